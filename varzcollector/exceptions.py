"""Exception hierarchy for varzcollector."""


class CollectorError(Exception):
    """Base exception for collector errors."""

    pass


class ConfigurationError(CollectorError):
    """Raised when collector settings are invalid."""

    pass


class BackendConnectionError(CollectorError):
    """Raised when a persistent backend connection can never be established."""

    pass


class MetricFormatError(CollectorError):
    """Raised when a metric record cannot be rendered for a backend."""

    pass
