"""Health manager (aggregator) handler strategy."""

from __future__ import annotations

from ..model import PollContext
from .base import Handler, HandlerStrategy

TOTAL_FIELDS = (
    "apps",
    "started_apps",
    "instances",
    "started_instances",
    "memory",
    "started_memory",
)

RUNNING_FIELDS = (
    "crashes",
    "running_apps",
    "missing_instances",
    "flapping_instances",
    "running_instances",
)

MESSAGE_COUNTERS = (
    "heartbeat_msgs_received",
    "droplet_exited_msgs_received",
    "droplet_updated_msgs_received",
    "healthmanager_status_msgs_received",
    "healthmanager_health_request_msgs_received",
    "healthmanager_droplet_request_msgs_received",
)

LOOP_TIMINGS = ("analysis_loop_duration", "bulk_update_loop_duration")


class HealthManagerMetrics(HandlerStrategy):
    def process(self, handler: Handler, context: PollContext) -> None:
        varz = context.varz

        total = varz.get("total") or {}
        for field in TOTAL_FIELDS:
            if field in total:
                handler.send_metric(f"hm.total.{field}", total[field], context)

        running = varz.get("running") or {}
        for field in RUNNING_FIELDS:
            if field in running:
                handler.send_metric(f"hm.running.{field}", running[field], context)

        for counter in MESSAGE_COUNTERS + LOOP_TIMINGS:
            if counter in varz:
                handler.send_metric(f"hm.{counter}", varz[counter], context)
