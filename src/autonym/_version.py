"""Version information for Autonym."""

__version__ = "0.1.0"


def get_version() -> str:
    """Get the Autonym version from package metadata, falling back to ``__version__``."""
    try:
        from importlib.metadata import version

        return version("autonym")
    except Exception:
        return __version__
