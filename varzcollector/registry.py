"""
Live component registry.

Tracks which instances of which component types are alive, keyed by
(component type, instance identity). Instance identity is the announced host
without its port, so re-announcements from the same host overwrite in place.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from .model import RegistryEntry, host_address
from .type_aliases import ComponentType, DurationSeconds, InstanceId, Timestamp


def _now() -> Timestamp:
    return int(time.time())


@dataclass(slots=True)
class ComponentRegistry:
    """Component type -> instance identity -> entry."""

    clock: Callable[[], Timestamp] = _now
    components: dict[ComponentType, dict[InstanceId, RegistryEntry]] = field(
        default_factory=dict
    )

    def record(self, message: Mapping[str, Any]) -> RegistryEntry | None:
        """
        Record a discovery message ``{type, index, host, credentials}``.

        Messages without an index are ignored. Errors are logged and swallowed
        so a malformed announcement never disturbs the bus callback.
        """
        try:
            if message.get("index") is None:
                logger.debug(
                    f"collector.component.discovery-ignored type={message.get('type')} "
                    f"host={message.get('host')}"
                )
                return None

            component_type = message["type"]
            host = message["host"]
            logger.debug(
                f"collector.component.discovered type={component_type} "
                f"index={message['index']} host={host}"
            )

            entry = RegistryEntry(
                component_type=component_type,
                instance_id=host_address(host),
                host=host,
                index=message["index"],
                credentials=message.get("credentials"),
                timestamp=self.clock(),
            )
            instances = self.components.setdefault(component_type, {})
            instances[entry.instance_id] = entry
            return entry
        except Exception as e:
            logger.warning(
                f"collector.component.discovery-failure error={e!r} message={message!r}"
            )
            return None

    def prune(self, now: Timestamp, max_age: DurationSeconds) -> int:
        """Drop entries older than ``max_age`` and any buckets left empty."""
        removed = 0
        try:
            for component_type in list(self.components):
                instances = self.components[component_type]
                for instance_id in list(instances):
                    if now - instances[instance_id].timestamp > max_age:
                        del instances[instance_id]
                        removed += 1
                if not instances:
                    del self.components[component_type]
        except Exception as e:
            logger.warning(f"collector.component.pruning-error error={e!r}")

        if removed:
            logger.debug(f"collector.component.pruned count={removed}")
        return removed

    def entries(self) -> Iterator[tuple[ComponentType, RegistryEntry]]:
        """Snapshot iteration over (component type, entry) pairs."""
        for component_type, instances in list(self.components.items()):
            for entry in list(instances.values()):
                yield component_type, entry

    def get(
        self, component_type: ComponentType, instance_id: InstanceId
    ) -> RegistryEntry | None:
        return self.components.get(component_type, {}).get(instance_id)

    def __len__(self) -> int:
        return sum(len(instances) for instances in self.components.values())

    def __contains__(self, component_type: object) -> bool:
        return component_type in self.components
