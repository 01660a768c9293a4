"""Service gateway (provisioner) and service node handler strategies."""

from __future__ import annotations

from collections.abc import Mapping

from ..model import PollContext
from ..type_aliases import Tags
from .base import Handler, HandlerStrategy

PLAN_FIELDS = (
    "low_water",
    "high_water",
    "score",
    "max_capacity",
    "used_capacity",
    "available_capacity",
)

CAPACITY_FIELDS = ("max", "used", "available")

HEALTHY_STATUS = "ok"


class ServiceTags(HandlerStrategy):
    def __init__(self, service_type: str, component: str) -> None:
        self.service_type = service_type
        self.component = component

    def additional_tags(self, context: PollContext) -> Tags:
        return {"service_type": self.service_type, "component": self.component}


class ServiceNodeMetrics(HandlerStrategy):
    def process(self, handler: Handler, context: PollContext) -> None:
        instances = context.varz.get("instances")
        if not isinstance(instances, Mapping):
            return

        handler.send_metric(
            "services.healthy_instances", healthy_percentage(instances), context
        )
        handler.send_metric("services.provisioned_instances", len(instances), context)


def healthy_percentage(instances: Mapping[str, object]) -> float | int:
    """Percentage of instances reporting ``ok``, to 2 places; 0 when none."""
    total = len(instances)
    if total == 0:
        return 0
    healthy = sum(
        1
        for status in instances.values()
        if str(status).strip().lower() == HEALTHY_STATUS
    )
    return round(healthy / total * 100, 2)


class ServiceGatewayMetrics(HandlerStrategy):
    def process(self, handler: Handler, context: PollContext) -> None:
        self._process_plans(handler, context)
        self._process_online_nodes(handler, context)
        self._process_response_codes(handler, context)

    def _process_plans(self, handler: Handler, context: PollContext) -> None:
        plans = context.varz.get("plans")
        if not isinstance(plans, list):
            return

        totals = dict.fromkeys(CAPACITY_FIELDS, 0)
        over_provisioned = 0
        for plan in plans:
            tags = {"plan": plan.get("plan")}
            for field in PLAN_FIELDS:
                if field in plan:
                    handler.send_metric(
                        f"services.plans.{field}", plan[field], context, tags
                    )
            allow = 1 if plan.get("allow_over_provisioning") else 0
            handler.send_metric(
                "services.plans.allow_over_provisioning", allow, context, tags
            )

            for capacity in CAPACITY_FIELDS:
                totals[capacity] += plan.get(f"{capacity}_capacity") or 0
            if (plan.get("used_capacity") or 0) > (plan.get("max_capacity") or 0):
                over_provisioned = 1

        for capacity, total in totals.items():
            handler.send_metric(f"services.capacity.{capacity}", total, context)
        handler.send_metric("services.over_provisioned", over_provisioned, context)

    def _process_online_nodes(self, handler: Handler, context: PollContext) -> None:
        nodes = context.varz.get("nodes")
        if isinstance(nodes, (Mapping, list)):
            handler.send_metric("services.online_nodes", len(nodes), context)

    def _process_response_codes(self, handler: Handler, context: PollContext) -> None:
        responses = context.varz.get("responses_metrics")
        if not isinstance(responses, Mapping):
            return
        for key, count in responses.items():
            status = key.removeprefix("responses_")
            handler.send_metric(f"services.http_status.{status}", count, context)
