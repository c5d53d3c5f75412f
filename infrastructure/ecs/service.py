from dataclasses import dataclass

from loguru import logger

from infrastructure.ecs.cluster import ComputeCluster
from infrastructure.ecs.task_definition import ContainerSpec
from infrastructure.errors import ConfigurationError


@dataclass(frozen=True)
class HealthCheck:
    path: str = "/"
    healthy_threshold: int = 2
    unhealthy_threshold: int = 3
    timeout: int = 5
    interval: int = 30


@dataclass(frozen=True)
class LoadBalancerSpec:
    """Internet-facing ALB in the public subnets, forwarding to the tasks."""

    name: str
    target_group_name: str
    listener_port: int
    target_port: int
    health_check: HealthCheck
    internal: bool = False


@dataclass(frozen=True)
class ServiceSpec:
    name: str
    cluster: ComputeCluster
    task_spec: ContainerSpec
    desired_count: int
    load_balancer: LoadBalancerSpec
    # tasks never get a public address, traffic only arrives through the ALB
    assign_public_ip: bool = False
    deployment_minimum_healthy_percent: int = 100
    deployment_maximum_percent: int = 200

    @property
    def subnets(self):
        return self.cluster.network.private_subnets


def build_service(
    cluster: ComputeCluster,
    task_spec: ContainerSpec,
    desired_count: int,
    name: str = "service",
    load_balancer_name: str = "alb",
    target_group_name: str = "tg",
    listener_port: int = 80,
    health_check_path: str = "/",
) -> ServiceSpec:
    if isinstance(desired_count, bool) or not isinstance(desired_count, int) or desired_count < 1:
        raise ConfigurationError(f"desired_count must be an integer >= 1, got {desired_count!r}")
    if not isinstance(cluster, ComputeCluster):
        raise ConfigurationError("Service needs a cluster")
    if not isinstance(task_spec, ContainerSpec):
        raise ConfigurationError("Service needs a task definition")
    if not health_check_path.startswith("/"):
        raise ConfigurationError(f"health_check_path must start with '/', got {health_check_path!r}")

    load_balancer = LoadBalancerSpec(
        name=load_balancer_name,
        target_group_name=target_group_name,
        listener_port=listener_port,
        target_port=task_spec.container_port,
        health_check=HealthCheck(path=health_check_path),
    )

    logger.debug(f"Declared service {name} with {desired_count} tasks behind {load_balancer_name}")

    return ServiceSpec(
        name=name,
        cluster=cluster,
        task_spec=task_spec,
        desired_count=desired_count,
        load_balancer=load_balancer,
    )
