"""Strategies for components that publish Go runtime stats and metric contexts."""

from __future__ import annotations

from collections.abc import Mapping

from ..model import PollContext
from .base import Handler, HandlerStrategy


def component_name(handler: Handler, context: PollContext) -> str:
    return str(context.varz.get("name") or handler.job)


class RuntimeStats(HandlerStrategy):
    """CPU count, goroutine count and memory stats under ``<name>.``."""

    def process(self, handler: Handler, context: PollContext) -> None:
        varz = context.varz
        name = component_name(handler, context)

        handler.send_metric(f"{name}.numCpus", varz.get("numCPUS"), context)
        handler.send_metric(f"{name}.numGoRoutines", varz.get("numGoRoutines"), context)

        memory_stats = varz.get("memoryStats") or {}
        for field, value in memory_stats.items():
            handler.send_metric(f"{name}.memoryStats.{field}", value, context)


class NestedContexts(HandlerStrategy):
    """
    Flatten ``contexts: [{name, metrics: [{name, value, tags}]}]``.

    Each metric becomes ``<component>.<context>.<metric>``; its own tags are
    merged over the payload-level ``tags`` mapping.
    """

    def process(self, handler: Handler, context: PollContext) -> None:
        varz = context.varz
        name = component_name(handler, context)
        shared_tags = varz.get("tags") if isinstance(varz.get("tags"), Mapping) else {}

        for metric_context in varz.get("contexts") or []:
            context_name = metric_context.get("name")
            for metric in metric_context.get("metrics") or []:
                tags = {**shared_tags, **(metric.get("tags") or {})}
                handler.send_metric(
                    f"{name}.{context_name}.{metric.get('name')}",
                    metric.get("value"),
                    context,
                    tags,
                )
