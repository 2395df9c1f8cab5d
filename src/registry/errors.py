"""Errors raised by the registry clients and handled by the metadata fetcher."""


class RegistryError(Exception):
    """The registry answered with something unusable for this package."""


class RegistryUnavailableError(RegistryError):
    """No response after the retry ceiling (timeouts, connection or SSL errors)."""


class PackageNotFoundError(Exception):
    """The registry does not know the package (HTTP 404); not a failure."""
