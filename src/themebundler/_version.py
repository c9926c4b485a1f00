"""Version lookup for themebundler."""

from importlib.metadata import PackageNotFoundError, version

DIST_NAME = "themebundler"


def get_version() -> str:
    """Version of the installed distribution.

    A source tree that was never installed reports ``0.0.0+unknown``.
    """
    try:
        return version(DIST_NAME)
    except PackageNotFoundError:
        return "0.0.0+unknown"
