"""Cloud controller (HTTP front-end) handler strategy."""

from __future__ import annotations

from collections import defaultdict

from ..model import PollContext
from .base import Handler, HandlerStrategy
from .common import send_mapping, send_nested

# days, hours, minutes, seconds
UPTIME_MULTIPLIERS = (86400, 3600, 60, 1)


def uptime_in_seconds(uptime: str) -> int:
    """Decode ``2d:2h:2m:2s`` with a fixed multiplier per field."""
    parts = [int(part.strip().rstrip("dhms")) for part in uptime.split(":")]
    if len(parts) != len(UPTIME_MULTIPLIERS):
        raise ValueError(f"Malformed uptime string: {uptime!r}")
    return sum(
        value * multiplier
        for value, multiplier in zip(parts, UPTIME_MULTIPLIERS, strict=True)
    )


class CloudControllerMetrics(HandlerStrategy):
    def process(self, handler: Handler, context: PollContext) -> None:
        varz = context.varz
        sinatra = varz.get("vcap_sinatra") or {}
        requests = sinatra.get("requests") or {}

        handler.send_metric(
            "cc.requests.outstanding", requests.get("outstanding"), context
        )
        handler.send_metric("cc.requests.completed", requests.get("completed"), context)

        # Aggregate response codes by their first digit: 201 and 204 -> 2XX
        buckets: dict[str, int] = defaultdict(int)
        for status, count in (sinatra.get("http_status") or {}).items():
            buckets[f"{str(status)[0]}XX"] += count
        for bucket, count in sorted(buckets.items()):
            handler.send_metric(f"cc.http_status.{bucket}", count, context)

        if varz.get("uptime"):
            handler.send_metric("cc.uptime", uptime_in_seconds(varz["uptime"]), context)

        if isinstance(varz.get("thread_info"), dict):
            send_nested(handler, "cc.thread_info", varz["thread_info"], context)

        if "cc_user_count" in varz:
            handler.send_metric("total_users", varz["cc_user_count"], context)

        send_mapping(
            handler, "cc.job_queue_length", varz.get("cc_job_queue_length"), context
        )
        send_mapping(
            handler, "cc.failed_job_count", varz.get("cc_failed_job_count"), context
        )
