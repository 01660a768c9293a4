"""Core data model shared by the registry, handlers and historian."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .type_aliases import (
    ComponentType,
    Credentials,
    HostAddress,
    HostPort,
    InstanceId,
    InstanceIndex,
    MetricName,
    Tags,
    Timestamp,
    Varz,
)


def host_address(host: HostPort) -> HostAddress:
    """Strip the port from a reported ``host:port`` string."""
    return host.split(":")[0]


@dataclass(slots=True)
class RegistryEntry:
    """One live component instance, as last announced on the bus."""

    component_type: ComponentType
    instance_id: InstanceId
    host: HostPort
    index: InstanceIndex
    credentials: Credentials | None
    timestamp: Timestamp

    @property
    def ip(self) -> HostAddress:
        return host_address(self.host)

    def credentials_ok(self) -> bool:
        """True when the credentials are a (user, password) sequence."""
        creds = self.credentials
        return (
            isinstance(creds, (list, tuple))
            and len(creds) == 2
            and all(isinstance(part, str) for part in creds)
        )


@dataclass(frozen=True, slots=True)
class PollContext:
    """Immutable snapshot handed to a handler for one fetch cycle."""

    index: InstanceIndex | None
    now: Timestamp | None
    varz: Varz = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MetricRecord:
    """A normalized metric ready for delivery to the backends."""

    key: MetricName | None
    value: Any
    timestamp: Timestamp | None = None
    tags: Tags = field(default_factory=dict)

    def tag(self, name: str) -> Any:
        return self.tags.get(name)


@dataclass(frozen=True, slots=True)
class LatencySample:
    """A latency-style reading: accumulated ``value`` over ``samples``."""

    value: float
    samples: int

    @classmethod
    def from_varz(cls, raw: Any) -> LatencySample | None:
        if isinstance(raw, LatencySample):
            return raw
        if not isinstance(raw, dict):
            return None
        value = raw.get("value")
        samples = raw.get("samples")
        if value is None or samples is None:
            return None
        return cls(value=value, samples=samples)

    @property
    def average(self) -> float | None:
        if self.samples > 0:
            return self.value / self.samples
        return None
