"""
Varz handlers.

``HANDLER_STRATEGIES`` maps each component type to the strategies its handler
is composed of. Unregistered component types get a plain :class:`Handler`,
which still emits the shared metrics.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from loguru import logger

from .. import components as c
from ..type_aliases import ComponentType
from .base import (
    MEM_AND_CPU_STATS,
    RECORDED_LOG_LEVELS,
    Handler,
    HandlerStrategy,
    MetricSink,
    uptime_string_to_seconds,
)
from .cloud_controller import CloudControllerMetrics
from .common import HostTags
from .dea import DeaMetrics
from .health_manager import HealthManagerMetrics
from .router import RouterMetrics
from .runtime_stats import NestedContexts, RuntimeStats
from .services import (
    ServiceGatewayMetrics,
    ServiceNodeMetrics,
    ServiceTags,
)

type StrategyFactory = Callable[[], Sequence[HandlerStrategy]]


def _go_component() -> Sequence[HandlerStrategy]:
    return (RuntimeStats(), NestedContexts())


def _gateway(service_type: str) -> StrategyFactory:
    return lambda: (ServiceTags(service_type, "gateway"), ServiceGatewayMetrics())


def _node(service_type: str) -> StrategyFactory:
    return lambda: (ServiceTags(service_type, "node"), ServiceNodeMetrics())


def _auxiliary(service_type: str) -> StrategyFactory:
    return lambda: (ServiceTags(service_type, "auxiliary"),)


HANDLER_STRATEGIES: dict[ComponentType, StrategyFactory] = {
    c.CLOUD_CONTROLLER_COMPONENT: lambda: (HostTags(), CloudControllerMetrics()),
    c.DEA_COMPONENT: lambda: (HostTags(), DeaMetrics()),
    c.HEALTH_MANAGER_COMPONENT: lambda: (HealthManagerMetrics(),),
    c.HM9000_COMPONENT: _go_component,
    c.ROUTER_COMPONENT: lambda: (HostTags(), RouterMetrics()),
    c.DOPPLER_SERVER_COMPONENT: _go_component,
    c.LOGGREGATOR_TRAFFICCONTROLLER_COMPONENT: _go_component,
    c.LOGGREGATOR_DEA_AGENT_COMPONENT: _go_component,
    c.METRON_AGENT_COMPONENT: _go_component,
    c.MARKETPLACE_GATEWAY: _gateway("marketplace"),
    c.ETCD_COMPONENT: _go_component,
    c.ETCD_DIEGO_COMPONENT: _go_component,
    c.RUNTIME_COMPONENT: _go_component,
    **{job: _gateway(service) for job, service in c.SERVICE_GATEWAYS.items()},
    **{job: _node(service) for job, service in c.SERVICE_NODES.items()},
    **{
        job: _auxiliary(service)
        for job, service in c.SERVICE_AUXILIARY_COMPONENTS.items()
    },
}


class HandlerRegistry:
    """Builds handlers on first use and keeps one per component type."""

    def __init__(self, historian: MetricSink, deployment: str) -> None:
        self.historian = historian
        self.deployment = deployment
        self._instances: dict[ComponentType, Handler] = {}

    def handler(self, job: ComponentType) -> Handler:
        handler = self._instances.get(job)
        if handler is None:
            factory = HANDLER_STRATEGIES.get(job)
            handler = Handler(
                self.historian,
                job,
                deployment=self.deployment,
                strategies=factory() if factory else (),
            )
            self._instances[job] = handler
            logger.debug(f"collector.handler.created job={job} handler={handler!r}")
        return handler

    def is_registered(self, job: ComponentType) -> bool:
        return job in HANDLER_STRATEGIES


__all__ = [
    "HANDLER_STRATEGIES",
    "MEM_AND_CPU_STATS",
    "RECORDED_LOG_LEVELS",
    "Handler",
    "HandlerRegistry",
    "HandlerStrategy",
    "MetricSink",
    "uptime_string_to_seconds",
]
