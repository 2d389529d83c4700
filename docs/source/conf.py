"""Project-level Sphinx configuration for the mimestream documentation site."""
# pylint: disable=invalid-name

# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import sys
from pathlib import Path

# -- Path setup --------------------------------------------------------------
# Add the project root to sys.path for autodoc
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from mimestream.meta import (  # noqa: E402  # pylint: disable=wrong-import-position
    __app_name__,
    __author__,
    __version__,
)

# -- Project information -----------------------------------------------------

project = __app_name__
copyright = f"2026, {__author__}"  # noqa: A001  # Sphinx requires this name
author = __author__
release = __version__
version = __version__

# -- General configuration ---------------------------------------------------

extensions = [
    "sphinx.ext.autodoc",  # Auto-generate docs from docstrings
    "sphinx.ext.napoleon",  # Support for Google/NumPy style docstrings
    "sphinx.ext.viewcode",  # Add [source] links to documentation
    "sphinx.ext.intersphinx",  # Link to other project's documentation
]

# Napoleon settings (for Google-style docstrings)
napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = True
napoleon_use_admonition_for_examples = True
napoleon_use_admonition_for_notes = True
napoleon_use_param = True
napoleon_use_rtype = True
napoleon_attr_annotations = True

# Autodoc settings
autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
    "undoc-members": True,
    "exclude-members": "__weakref__",
}
autodoc_typehints = "description"
autodoc_typehints_description_target = "documented"

exclude_patterns: list[str] = []
pygments_style = "sphinx"

# -- Options for HTML output -------------------------------------------------

html_theme = "furo"
html_title = __app_name__

# -- Options for intersphinx extension ---------------------------------------

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
}
