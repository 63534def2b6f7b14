"""Package version, kept in the VERSION file shipped inside the package."""

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

VERSION_FILE = Path(__file__).with_name("VERSION")


def _get_version() -> str:
    if VERSION_FILE.exists():
        return VERSION_FILE.read_text().strip()
    # Installed without package data
    try:
        return version("gworkspace-gateway")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()
