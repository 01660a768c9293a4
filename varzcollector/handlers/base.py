"""
Base varz handler.

A handler turns one component's varz payload into metric records and pushes
them to the historian. Every handler emits the shared metrics (memory, CPU,
uptime, log counts) and then runs its strategies, the small per-variant
objects that carry the component-specific logic.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from loguru import logger

from ..components import get_job_tags
from ..model import LatencySample, MetricRecord, PollContext
from ..type_aliases import ComponentType, MetricName, Tags

MEM_AND_CPU_STATS = ("mem_bytes", "mem_used_bytes", "mem_free_bytes", "cpu_load_avg")

RECORDED_LOG_LEVELS = frozenset({"fatal", "error", "warn"})

_UPTIME_PATTERN = re.compile(r"^\s*(\d+)d:?(\d+)h:?(\d+)m:?(\d+)s\s*$")


def uptime_string_to_seconds(uptime: str) -> int:
    """Convert ``NNd:NNh:NNm:NNs`` (colons optional) into seconds."""
    match = _UPTIME_PATTERN.match(uptime)
    if not match:
        raise ValueError(f"Malformed uptime string: {uptime!r}")
    days, hours, minutes, seconds = (int(part) for part in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


class MetricSink(Protocol):
    """Anything that accepts metric records (the historian, or a test fake)."""

    def send_data(self, record: MetricRecord) -> None: ...


class HandlerStrategy:
    """
    Component-specific logic plugged into a handler.

    Subclasses override ``process`` to emit metrics through the handler and
    ``additional_tags`` to contribute tags to every metric the handler sends.
    """

    def process(self, handler: Handler, context: PollContext) -> None:
        pass

    def additional_tags(self, context: PollContext) -> Tags:
        return {}


class Handler:
    """Varz metric handler for one component type."""

    def __init__(
        self,
        historian: MetricSink,
        job: ComponentType | None,
        *,
        deployment: str = "untitled_dev",
        strategies: Sequence[HandlerStrategy] = (),
    ) -> None:
        self.historian = historian
        self.job = job
        self.deployment = deployment
        self.strategies = tuple(strategies)

    def __repr__(self) -> str:
        names = ", ".join(type(s).__name__ for s in self.strategies)
        return f"Handler(job={self.job!r}, strategies=[{names}])"

    def do_process(self, context: PollContext) -> None:
        """Process shared metric data, then run the strategies."""
        varz = context.varz

        for stat in MEM_AND_CPU_STATS:
            if varz.get(stat) is not None:
                self.send_metric(stat, varz[stat], context)

        if varz.get("uptime"):
            self.send_metric(
                "uptime_in_seconds", uptime_string_to_seconds(varz["uptime"]), context
            )

        # Log counts in varz look like: {"log_counts": {"error": 2, "warn": 1}}
        log_counts = varz.get("log_counts") or {}
        for level, count in log_counts.items():
            if level not in RECORDED_LOG_LEVELS:
                continue
            self.send_metric("log_count", count, context, {"level": level})

        self.process(context)

    def process(self, context: PollContext) -> None:
        for strategy in self.strategies:
            strategy.process(self, context)

    def additional_tags(self, context: PollContext) -> Tags:
        tags: Tags = {}
        for strategy in self.strategies:
            tags.update(strategy.additional_tags(context))
        return tags

    def send_metric(
        self,
        name: MetricName,
        value: Any,
        context: PollContext,
        tags: Mapping[Any, Any] | None = None,
    ) -> None:
        """Send one metric to the historian, dropping it if it has no value."""
        if value is None:
            logger.warning(f"Received no value for {name}")
            return
        record = MetricRecord(
            key=name,
            timestamp=context.now,
            value=value,
            tags=self.build_tags(context, tags),
        )
        self.historian.send_data(record)

    def send_latency_metric(
        self,
        name: MetricName,
        value: Any,
        context: PollContext,
        tags: Mapping[Any, Any] | None = None,
    ) -> None:
        """Send ``value / samples`` of a latency reading; skip when no samples."""
        sample = LatencySample.from_varz(value)
        if sample is None:
            return
        average = sample.average
        if average is not None:
            self.send_metric(name, average, context, tags)

    def build_tags(
        self, context: PollContext, provided: Mapping[Any, Any] | None = None
    ) -> Tags:
        """
        Merge tags for one metric.

        Precedence, lowest first: strategy tags, metric-specific tags, then the
        base tags (role, job, index, deployment), which always win.
        """
        tags: Tags = dict(self.additional_tags(context))
        tags.update({str(key): value for key, value in (provided or {}).items()})

        tags.update(get_job_tags(self.job or ""))
        tags.update(job=self.job, index=context.index, deployment=self.deployment)
        tags.setdefault("name", f"{self.job}/{context.index}")
        return tags
