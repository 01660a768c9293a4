"""
Component type catalogue.

Names the component types announced on the bus and groups them into the
roles used for tagging metrics.
"""

from __future__ import annotations

from .type_aliases import ComponentType, Tags

CLOUD_CONTROLLER_COMPONENT = "CloudController"
DEA_COMPONENT = "DEA"
HEALTH_MANAGER_COMPONENT = "HealthManager"
HM9000_COMPONENT = "HM9000"
ROUTER_COMPONENT = "Router"
DOPPLER_SERVER_COMPONENT = "DopplerServer"
LOGGREGATOR_TRAFFICCONTROLLER_COMPONENT = "LoggregatorTrafficcontroller"
LOGGREGATOR_DEA_AGENT_COMPONENT = "LoggregatorDeaAgent"
METRON_AGENT_COMPONENT = "MetronAgent"

MARKETPLACE_GATEWAY = "MarketplaceGateway"

ETCD_COMPONENT = "etcd"
ETCD_DIEGO_COMPONENT = "etcd-diego"

# diego runtime state
RUNTIME_COMPONENT = "runtime"

# the collector reports its own metrics under this job name
COLLECTOR_COMPONENT = "collector"

# services components
MYSQL_PROVISIONER = "MyaaS-Provisioner"
MYSQL_NODE = "MyaaS-Node"

PGSQL_PROVISIONER = "AuaaS-Provisioner"
PGSQL_NODE = "AuaaS-Node"

MONGODB_PROVISIONER = "MongoaaS-Provisioner"
MONGODB_NODE = "MongoaaS-Node"

NEO4J_PROVISIONER = "Neo4jaaS-Provisioner"
NEO4J_NODE = "Neo4jaaS-Node"

RABBITMQ_PROVISIONER = "RMQaaS-Provisioner"
RABBITMQ_NODE = "RMQaaS-Node"

REDIS_PROVISIONER = "RaaS-Provisioner"
REDIS_NODE = "RaaS-Node"

VBLOB_PROVISIONER = "VBlobaaS-Provisioner"
VBLOB_NODE = "VBlobaaS-Node"

SERIALIZATION_DATA_SERVER = "SerializationDataServer"

BACKUP_MANAGER = "BackupManager"

CORE_COMPONENTS: frozenset[ComponentType] = frozenset(
    {
        CLOUD_CONTROLLER_COMPONENT,
        DEA_COMPONENT,
        HEALTH_MANAGER_COMPONENT,
        HM9000_COMPONENT,
        ROUTER_COMPONENT,
        DOPPLER_SERVER_COMPONENT,
        LOGGREGATOR_TRAFFICCONTROLLER_COMPONENT,
        LOGGREGATOR_DEA_AGENT_COMPONENT,
    }
)

# provisioner/node type -> service type
SERVICE_GATEWAYS: dict[ComponentType, str] = {
    MYSQL_PROVISIONER: "mysql",
    PGSQL_PROVISIONER: "postgresql",
    MONGODB_PROVISIONER: "mongodb",
    NEO4J_PROVISIONER: "neo4j",
    RABBITMQ_PROVISIONER: "rabbitmq",
    REDIS_PROVISIONER: "redis",
    VBLOB_PROVISIONER: "vblob",
}

SERVICE_NODES: dict[ComponentType, str] = {
    MYSQL_NODE: "mysql",
    PGSQL_NODE: "postgresql",
    MONGODB_NODE: "mongodb",
    NEO4J_NODE: "neo4j",
    RABBITMQ_NODE: "rabbitmq",
    REDIS_NODE: "redis",
    VBLOB_NODE: "vblob",
}

SERVICE_COMPONENTS: frozenset[ComponentType] = frozenset(SERVICE_GATEWAYS) | frozenset(
    SERVICE_NODES
)

SERVICE_AUXILIARY_COMPONENTS: dict[ComponentType, str] = {
    SERIALIZATION_DATA_SERVER: "serialization_data_server",
    BACKUP_MANAGER: "backup_manager",
}


def get_job_tags(component_type: ComponentType) -> Tags:
    """Common tags for a job type (currently just its role)."""
    if component_type in CORE_COMPONENTS:
        return {"role": "core"}
    if (
        component_type in SERVICE_COMPONENTS
        or component_type in SERVICE_AUXILIARY_COMPONENTS
    ):
        return {"role": "service"}
    return {}
