"""Exception types shared across the engine, sources and web layer."""


class LmsError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(LmsError):
    """Required configuration is missing or malformed."""


class ResultSourceError(LmsError):
    """The external result source failed or returned unusable data."""
