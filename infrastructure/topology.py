"""Synthesizes the whole deployment declaration from TopologySettings.

Builders run in a fixed order: network, cluster, asset store, execution role,
task definition, service. Each one takes its inputs as arguments, so the
same settings always produce an equal Topology. Any error aborts synthesis.
"""
from dataclasses import dataclass

from loguru import logger

from infrastructure.ecs.cluster import ComputeCluster, build_cluster
from infrastructure.ecs.service import ServiceSpec, build_service
from infrastructure.ecs.task_definition import ContainerSpec, build_task_spec
from infrastructure.iam.roles import (
    DEFAULT_MANAGED_BASELINES,
    DEFAULT_STORAGE_ACTIONS,
    TASK_EXECUTION_PRINCIPAL,
    AccessRole,
    build_access_role,
)
from infrastructure.naming import physical_name
from infrastructure.networking.vpc import NetworkTopology, build_network
from infrastructure.storage.assets import AssetStoreHandle, AssetStoreOptions, build_asset_store


@dataclass(frozen=True)
class Topology:
    network: NetworkTopology
    cluster: ComputeCluster
    asset_store: AssetStoreHandle
    execution_role: AccessRole
    task_spec: ContainerSpec
    service: ServiceSpec

    def resources(self) -> list:
        """(kind, name) pairs in the order they must be created."""
        return [
            ("network", self.network.name),
            ("cluster", self.cluster.name),
            ("asset_store", self.asset_store.name),
            ("execution_role", self.execution_role.name),
            ("task_definition", self.task_spec.family),
            ("service", self.service.name),
        ]


def synthesize(settings) -> Topology:
    stack = settings.stack_name
    logger.info(f"Synthesizing topology for stack {stack}")

    network = build_network(
        settings.az_count,
        base_cidr=settings.vpc_cidr,
        name=physical_name(stack, "vpc"),
        nat_gateways=settings.nat_gateways,
        availability_zones=settings.availability_zones,
    )
    cluster = build_cluster(
        network,
        name=settings.cluster_name or physical_name(stack, "cluster"),
        container_insights=settings.container_insights,
    )
    asset_store = build_asset_store(
        settings.bucket_name or physical_name(stack, "assets"),
        AssetStoreOptions(
            versioned=settings.bucket_versioned,
            public_read=settings.bucket_public_read,
            destroy_on_teardown=settings.bucket_destroy_on_teardown,
            auto_purge_on_destroy=settings.bucket_auto_purge,
            block_acls_only=settings.bucket_block_acls_only,
            noncurrent_version_expiration_days=settings.bucket_noncurrent_version_expiration_days,
        ),
        region=settings.region,
    )
    role = build_access_role(
        TASK_EXECUTION_PRINCIPAL,
        DEFAULT_MANAGED_BASELINES,
        DEFAULT_STORAGE_ACTIONS,
        [asset_store.arn, asset_store.objects_arn],
        name=physical_name(stack, "task-execution-role"),
    )
    task_spec = build_task_spec(
        settings.cpu,
        settings.memory,
        role,
        settings.image,
        settings.container_port,
        settings.log_stream_prefix,
        family=physical_name(stack, "web"),
        region=settings.region,
        cpu_architecture=settings.cpu_architecture,
        log_retention_days=settings.log_retention_days,
    )
    service = build_service(
        cluster,
        task_spec,
        settings.desired_count,
        name=physical_name(stack, "service"),
        load_balancer_name=physical_name(stack, "alb", max_length=32),
        target_group_name=physical_name(stack, "tg", max_length=32),
        health_check_path=settings.health_check_path,
    )

    logger.info(f"✓ Topology for {stack}: {len(network.subnets)} subnets, {service.desired_count} tasks")

    return Topology(
        network=network,
        cluster=cluster,
        asset_store=asset_store,
        execution_role=role,
        task_spec=task_spec,
        service=service,
    )
