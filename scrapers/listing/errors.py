"""Exceptions raised out of the listing run."""


class ListingError(Exception):
    """Base class for listing scraper errors."""


class ConfigurationError(ListingError):
    """The run cannot start: no targets, unknown platform, bad input."""


class NavigationError(ListingError):
    """The target page failed to load; the attempt is retried."""
