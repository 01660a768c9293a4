"""Edge router handler strategy."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..model import PollContext
from .base import Handler, HandlerStrategy

RESPONSE_STATUSES = ("2xx", "3xx", "4xx", "5xx", "xxx")

# Backends named dea-<N> are application instances, reported as component "app"
DEA_PREFIX = "dea-"


class RouterMetrics(HandlerStrategy):
    def process(self, handler: Handler, context: PollContext) -> None:
        varz = context.varz

        handler.send_metric("router.total_requests", varz.get("requests"), context)
        handler.send_metric("router.total_routes", varz.get("urls"), context)
        if varz.get("requests_per_sec") is not None:
            handler.send_metric(
                "router.requests_per_sec", int(varz["requests_per_sec"]), context
            )
        handler.send_metric(
            "router.ms_since_last_registry_update",
            varz.get("ms_since_last_registry_update"),
            context,
        )
        handler.send_metric("router.rejected_requests", varz.get("bad_requests"), context)
        handler.send_metric("router.bad_gateways", varz.get("bad_gateways"), context)
        handler.send_latency_metric("router.latency.1m", varz.get("latency"), context)

        for status in RESPONSE_STATUSES:
            key = f"responses_{status}"
            if key in varz:
                handler.send_metric(f"router.responses.{status}", varz[key], context)

        components = (varz.get("tags") or {}).get("component")
        if isinstance(components, Mapping) and components:
            self._process_components(handler, components, context)

    def _process_components(
        self,
        handler: Handler,
        components: Mapping[str, Any],
        context: PollContext,
    ) -> None:
        routed_app_requests = 0

        for component, data in components.items():
            if not isinstance(data, Mapping):
                continue

            if component.startswith(DEA_PREFIX):
                tags = {"component": "app", "dea_index": component[len(DEA_PREFIX) :]}
                routed_app_requests += data.get("requests") or 0
            else:
                tags = {"component": component}

            handler.send_metric("router.requests", data.get("requests"), context, tags)
            handler.send_latency_metric(
                "router.latency.1m", data.get("latency"), context, tags
            )
            for status in RESPONSE_STATUSES:
                handler.send_metric(
                    "router.responses",
                    data.get(f"responses_{status}"),
                    context,
                    {**tags, "status": status},
                )

        handler.send_metric("router.routed_app_requests", routed_app_requests, context)
