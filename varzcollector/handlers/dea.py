"""Runtime host (DEA) handler strategy."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from ..model import PollContext
from .base import Handler, HandlerStrategy

INSTANCE_STATES = (
    "BORN",
    "STARTING",
    "RUNNING",
    "STOPPING",
    "STOPPED",
    "CRASHED",
    "RESUMING",
    "DELETED",
    "EVACUATING",
)

# instances in these states hold their memory and disk reservations
ACTIVE_STATES = frozenset({"BORN", "STARTING", "RUNNING", "RESUMING"})

CAPACITY_STATS = (
    "can_stage",
    "reservable_stagers",
    "available_memory_ratio",
    "available_disk_ratio",
)


def _instances(varz: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    # instance_registry: {app_id: {instance_id: {"state": ..., "limits": {...}}}}
    for app_instances in (varz.get("instance_registry") or {}).values():
        for instance in (app_instances or {}).values():
            if isinstance(instance, Mapping):
                yield instance


class DeaMetrics(HandlerStrategy):
    def process(self, handler: Handler, context: PollContext) -> None:
        varz = context.varz

        for stat in CAPACITY_STATS:
            handler.send_metric(stat, varz.get(stat), context)

        state_counts = dict.fromkeys(INSTANCE_STATES, 0)
        mem_reserved = 0
        disk_reserved = 0
        for instance in _instances(varz):
            state = instance.get("state")
            if state in state_counts:
                state_counts[state] += 1
            if state in ACTIVE_STATES:
                limits = instance.get("limits") or {}
                mem_reserved += limits.get("mem", 0)
                disk_reserved += limits.get("disk", 0)

        for state, count in state_counts.items():
            handler.send_metric(f"dea_registry_{state.lower()}", count, context)

        handler.send_metric("dea_registry_mem_reserved", mem_reserved, context)
        handler.send_metric("dea_registry_disk_reserved", disk_reserved, context)
