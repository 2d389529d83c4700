"""Tests for mimestream package initialization.

These tests verify that the package can be imported correctly and that
all public APIs are accessible.
"""

# pylint: disable=import-outside-toplevel


def test_package_imports() -> None:
    """Test that all public APIs can be imported from mimestream."""
    from mimestream import (
        ConfigLoader,
        LogManager,
        StreamingMail,
        clear_config,
        get_config,
        init_logging,
        load_config,
        load_from_env,
        load_from_file,
        require_config,
    )

    assert all(
        obj is not None
        for obj in (
            ConfigLoader,
            LogManager,
            StreamingMail,
            clear_config,
            get_config,
            init_logging,
            load_config,
            load_from_env,
            load_from_file,
            require_config,
        )
    )


def test_version_format() -> None:
    """Test that __version__ has the correct format."""
    import mimestream
    from mimestream.meta import __app_name__, __version__

    assert mimestream.__version__ == __version__
    assert __app_name__ == "mimestream"
    parts = __version__.split(".")
    assert len(parts) >= 3
    assert parts[0].isdigit()
    assert parts[1].isdigit()


def test_all_exports() -> None:
    """Every name in __all__ is an attribute of its package."""
    import mimestream
    import mimestream.config
    import mimestream.logging
    import mimestream.mail

    for module in (mimestream, mimestream.config, mimestream.logging, mimestream.mail):
        for name in module.__all__:
            assert hasattr(module, name), f"{module.__name__}.{name}"


def test_error_hierarchy_root() -> None:
    """Every library error derives from MimestreamError."""
    from mimestream.config import ConfigError, MimestreamError
    from mimestream.mail import MailError, PipeClosedError

    assert issubclass(ConfigError, MimestreamError)
    assert issubclass(MailError, MimestreamError)
    assert issubclass(PipeClosedError, MimestreamError)
