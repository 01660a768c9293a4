"""
Collector configuration.

Settings are built once at start-up and passed explicitly to every component
that needs them. A backend section that is absent (or lacks its required keys)
leaves that backend's adapter out of the historian.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from .exceptions import ConfigurationError
from .type_aliases import DurationSeconds, HostAddress, PortNumber, UrlString

DEFAULT_NATS_URI: tuple[str, ...] = ("nats://127.0.0.1:4222",)
DEFAULT_DATADOG_URL = "https://app.datadoghq.com/api/v1/series"
DEFAULT_CLOUDWATCH_NAMESPACE = "CF/Collector"


@dataclass(frozen=True, slots=True)
class IntervalSettings:
    """Periods (seconds) for each of the collector's timers."""

    discover: DurationSeconds = 60.0
    varz: DurationSeconds = 30.0
    healthz: DurationSeconds = 30.0
    prune: DurationSeconds = 300.0
    nats_ping: DurationSeconds = 10.0
    local_metrics: DurationSeconds = 10.0

    def __post_init__(self) -> None:
        for name in self.__slots__:
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(
                    f"Interval '{name}' must be a positive number, got: {value!r}"
                )


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    level: str = "INFO"
    file: str | None = None
    debug_scopes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TcpBackendSettings:
    """Host and port of a line-oriented TCP backend (TSDB or Graphite)."""

    host: HostAddress
    port: PortNumber

    def __post_init__(self) -> None:
        if not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid backend port: {self.port!r}")


@dataclass(frozen=True, slots=True)
class DataDogSettings:
    api_key: str
    application_key: str | None = None
    data_threshold: int = 1000
    time_threshold_in_seconds: DurationSeconds = 10.0
    url: UrlString = DEFAULT_DATADOG_URL


@dataclass(frozen=True, slots=True)
class CfMetricsSettings:
    host: HostAddress


@dataclass(frozen=True, slots=True)
class CloudWatchSettings:
    access_key_id: str
    secret_access_key: str
    region: str = "us-east-1"
    namespace: str = DEFAULT_CLOUDWATCH_NAMESPACE


@dataclass(frozen=True, slots=True)
class CollectorSettings:
    """Collector configuration settings."""

    nats_uri: tuple[str, ...] = DEFAULT_NATS_URI
    index: int = 0
    deployment_name: str = "untitled_dev"
    status_path: str = "varz"
    health_path: str = "healthz"
    max_concurrent_fetches: int = 32
    http_timeout: DurationSeconds = 10.0
    intervals: IntervalSettings = field(default_factory=IntervalSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    # Backends; None means the adapter is not built
    tsdb: TcpBackendSettings | None = None
    graphite: TcpBackendSettings | None = None
    datadog: DataDogSettings | None = None
    cf_metrics: CfMetricsSettings | None = None
    aws_cloud_watch: CloudWatchSettings | None = None

    def __post_init__(self) -> None:
        if self.max_concurrent_fetches < 1:
            raise ConfigurationError("max_concurrent_fetches must be at least 1")
        if self.http_timeout <= 0:
            raise ConfigurationError("http_timeout must be positive")

    def active_backends(self) -> list[str]:
        """Names of the backends whose settings are present."""
        names = ("tsdb", "graphite", "datadog", "cf_metrics", "aws_cloud_watch")
        return [name for name in names if getattr(self, name) is not None]


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Config section '{key}' must be a mapping")
    return value


def _has_required(section: Mapping[str, Any], *keys: str) -> bool:
    return bool(section) and all(section.get(key) not in (None, "") for key in keys)


def _tcp_backend(data: Mapping[str, Any], key: str) -> TcpBackendSettings | None:
    section = _section(data, key)
    if not _has_required(section, "host", "port"):
        return None
    try:
        port = int(section["port"])
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid port for '{key}': {section['port']!r}")
    return TcpBackendSettings(host=str(section["host"]), port=port)


def _datadog(data: Mapping[str, Any]) -> DataDogSettings | None:
    section = _section(data, "datadog")
    if not _has_required(section, "api_key"):
        return None
    return DataDogSettings(
        api_key=str(section["api_key"]),
        application_key=section.get("application_key"),
        data_threshold=int(section.get("data_threshold", 1000)),
        time_threshold_in_seconds=float(section.get("time_threshold_in_seconds", 10)),
        url=str(section.get("url", DEFAULT_DATADOG_URL)),
    )


def _cf_metrics(data: Mapping[str, Any]) -> CfMetricsSettings | None:
    section = _section(data, "cf_metrics")
    if not _has_required(section, "host"):
        return None
    return CfMetricsSettings(host=str(section["host"]))


def _cloud_watch(data: Mapping[str, Any]) -> CloudWatchSettings | None:
    section = _section(data, "aws_cloud_watch")
    if not _has_required(section, "access_key_id", "secret_access_key"):
        return None
    return CloudWatchSettings(
        access_key_id=str(section["access_key_id"]),
        secret_access_key=str(section["secret_access_key"]),
        region=str(section.get("region", "us-east-1")),
        namespace=str(section.get("namespace", DEFAULT_CLOUDWATCH_NAMESPACE)),
    )


def settings_from_dict(data: Mapping[str, Any]) -> CollectorSettings:
    """Build settings from a nested mapping (as loaded from a JSON file)."""
    intervals = _section(data, "intervals")
    logging_section = _section(data, "logging")

    nats_uri = data.get("nats_uri", DEFAULT_NATS_URI)
    if isinstance(nats_uri, str):
        nats_uri = (nats_uri,)

    try:
        settings = CollectorSettings(
            nats_uri=tuple(nats_uri),
            index=int(data.get("index", 0)),
            deployment_name=str(data.get("deployment_name", "untitled_dev")),
            status_path=str(data.get("status_path", "varz")).lstrip("/"),
            health_path=str(data.get("health_path", "healthz")).lstrip("/"),
            max_concurrent_fetches=int(data.get("max_concurrent_fetches", 32)),
            http_timeout=float(data.get("http_timeout", 10.0)),
            intervals=IntervalSettings(
                **{key: float(value) for key, value in intervals.items()}
            ),
            logging=LoggingSettings(
                level=str(logging_section.get("level", "INFO")).upper(),
                file=logging_section.get("file"),
                debug_scopes=tuple(logging_section.get("debug_scopes", ())),
            ),
            tsdb=_tcp_backend(data, "tsdb"),
            graphite=_tcp_backend(data, "graphite"),
            datadog=_datadog(data),
            cf_metrics=_cf_metrics(data),
            aws_cloud_watch=_cloud_watch(data),
        )
    except TypeError as e:
        # Unknown interval keys surface as unexpected keyword arguments
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e

    logger.debug(
        f"collector.config.loaded deployment={settings.deployment_name} "
        f"backends={settings.active_backends()}"
    )
    return settings


def load_settings(path: str | Path) -> CollectorSettings:
    """Load settings from a JSON configuration file."""
    config_file = Path(path)
    try:
        with open(config_file) as f:
            config_data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_file}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed config file {config_file}: {e}") from e

    if not isinstance(config_data, Mapping):
        raise ConfigurationError(f"Config file {config_file} must hold an object")
    return settings_from_dict(config_data)
