"""Strategies shared by several handler variants."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..model import PollContext, host_address
from ..type_aliases import MetricName, Tags
from .base import Handler, HandlerStrategy


class HostTags(HandlerStrategy):
    """Tag every metric with the ``ip`` the component reports in its varz."""

    def additional_tags(self, context: PollContext) -> Tags:
        host = context.varz.get("host")
        if not host:
            return {}
        return {"ip": host_address(str(host))}


def send_mapping(
    handler: Handler,
    prefix: MetricName,
    values: Mapping[str, Any] | None,
    context: PollContext,
    tags: Mapping[str, Any] | None = None,
) -> None:
    """Send every entry of a flat mapping as ``<prefix>.<key>``."""
    for key, value in (values or {}).items():
        handler.send_metric(f"{prefix}.{key}", value, context, tags)


def send_nested(
    handler: Handler,
    prefix: MetricName,
    values: Mapping[str, Any],
    context: PollContext,
) -> None:
    """Recursively flatten nested mappings into dotted metric names."""
    for key, value in values.items():
        name = f"{prefix}.{key}"
        if isinstance(value, Mapping):
            send_nested(handler, name, value, context)
        else:
            handler.send_metric(name, value, context)
