"""
varzcollector: discovers components over NATS, polls their varz and healthz
endpoints, and fans the resulting metrics out to time-series backends.
"""

from .collector import Collector
from .config import CollectorSettings, load_settings, settings_from_dict
from .exceptions import (
    BackendConnectionError,
    CollectorError,
    ConfigurationError,
    MetricFormatError,
)
from .historian import Historian, build_historian
from .model import LatencySample, MetricRecord, PollContext, RegistryEntry
from .poller import Poller
from .registry import ComponentRegistry

__version__ = "0.1.0"

__all__ = [
    "BackendConnectionError",
    "Collector",
    "CollectorError",
    "CollectorSettings",
    "ComponentRegistry",
    "ConfigurationError",
    "Historian",
    "LatencySample",
    "MetricFormatError",
    "MetricRecord",
    "Poller",
    "PollContext",
    "RegistryEntry",
    "build_historian",
    "load_settings",
    "settings_from_dict",
]
