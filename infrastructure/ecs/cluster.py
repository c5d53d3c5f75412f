from dataclasses import dataclass

from loguru import logger

from infrastructure.errors import ConfigurationError
from infrastructure.networking.vpc import NetworkTopology


@dataclass(frozen=True)
class ComputeCluster:
    """ECS cluster bound to one network. Holds the network by reference only."""

    name: str
    network: NetworkTopology
    container_insights: bool = False


def build_cluster(network: NetworkTopology, name: str = "cluster", container_insights: bool = False) -> ComputeCluster:
    if network is None:
        raise ConfigurationError("A cluster must be bound to a network")
    if not isinstance(network, NetworkTopology):
        raise ConfigurationError(f"Expected a NetworkTopology, got {type(network).__name__}")

    logger.debug(f"Declared cluster {name} in network {network.name}")
    return ComputeCluster(name=name, network=network, container_insights=container_insights)
