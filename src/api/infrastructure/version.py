"""Application version reported at startup and in the OpenAPI document."""

from functools import lru_cache
from importlib import metadata

DISTRIBUTION_NAME = "student-records-api"
UNINSTALLED_VERSION = "0.0.0+unknown"


@lru_cache
def get_version() -> str:
    """Version of the installed distribution.

    A checkout imported through ``pythonpath`` without being installed has
    no distribution metadata and reports ``UNINSTALLED_VERSION``.
    """
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return UNINSTALLED_VERSION
