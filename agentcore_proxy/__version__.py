"""Version information for agentcore-proxy."""

from importlib.metadata import PackageNotFoundError, version

__version__ = "0.1.0"


def get_version() -> str:
    """Return the installed distribution version, falling back to the source version."""
    try:
        return version("agentcore-proxy")
    except PackageNotFoundError:
        return __version__
