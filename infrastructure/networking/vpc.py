import ipaddress
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import pulumi
import pulumi_aws as aws
from loguru import logger
from pulumi import ComponentResource, ResourceOptions

from infrastructure.errors import ConfigurationError

# Largest AZ count any commercial region offers.
MAX_AZS = 6
DEFAULT_VPC_CIDR = "10.0.0.0/16"


@dataclass(frozen=True)
class Subnet:
    name: str
    cidr: str
    az_index: int
    public: bool
    # None until the zone names are resolved against the account
    availability_zone: Optional[str] = None


@dataclass(frozen=True)
class NetworkTopology:
    """Declared VPC layout: one public and one private subnet per AZ.

    Subnets refer to their zone by index. Zone names are only fixed when they
    were passed in explicitly, otherwise ``VpcComponent`` looks them up.
    """

    name: str
    cidr: str
    az_count: int
    subnets: tuple[Subnet, ...]
    nat_gateways: int
    availability_zones: tuple[str, ...] = ()

    @property
    def public_subnets(self) -> tuple[Subnet, ...]:
        return tuple(s for s in self.subnets if s.public)

    @property
    def private_subnets(self) -> tuple[Subnet, ...]:
        return tuple(s for s in self.subnets if not s.public)


def _check_zones(availability_zones: Sequence[str], az_count: int) -> tuple[str, ...]:
    if isinstance(availability_zones, str):
        availability_zones = (availability_zones,)
    zones = tuple(availability_zones)
    if len(set(zones)) != len(zones) or not all(isinstance(z, str) and z for z in zones):
        raise ConfigurationError(f"availability_zones must be distinct zone names, got {zones!r}")
    if len(zones) < az_count:
        raise ConfigurationError(f"az_count is {az_count} but only {len(zones)} zones are available: {list(zones)}")
    return zones[:az_count]


def build_network(
    az_count: int,
    base_cidr: str = DEFAULT_VPC_CIDR,
    name: str = "vpc",
    nat_gateways: Optional[int] = None,
    availability_zones: Optional[Sequence[str]] = None,
) -> NetworkTopology:
    if isinstance(az_count, bool) or not isinstance(az_count, int):
        raise ConfigurationError(f"az_count must be an integer, got {az_count!r}")
    if not 1 <= az_count <= MAX_AZS:
        raise ConfigurationError(f"az_count must be between 1 and {MAX_AZS}, got {az_count}")

    if nat_gateways is None:
        nat_gateways = az_count
    if isinstance(nat_gateways, bool) or not isinstance(nat_gateways, int) or not 1 <= nat_gateways <= az_count:
        raise ConfigurationError(f"nat_gateways must be between 1 and {az_count}, got {nat_gateways!r}")

    zones = _check_zones(availability_zones, az_count) if availability_zones is not None else ()

    try:
        network = ipaddress.ip_network(base_cidr)
    except ValueError as e:
        raise ConfigurationError(f"Invalid base CIDR {base_cidr!r}: {e}") from e
    if network.version != 4:
        raise ConfigurationError(f"Only IPv4 base CIDRs are supported, got {base_cidr}")

    extra_bits = math.ceil(math.log2(2 * az_count))
    new_prefix = network.prefixlen + extra_bits
    # a /28 is the smallest subnet AWS accepts
    if new_prefix > 28:
        raise ConfigurationError(f"{base_cidr} is too small for {2 * az_count} subnets")

    blocks = list(network.subnets(new_prefix=new_prefix))

    subnets = []
    for public, offset, kind in ((True, 0, "public"), (False, az_count, "private")):
        for index in range(az_count):
            subnets.append(
                Subnet(
                    f"{name}-{kind}-{index + 1}",
                    str(blocks[offset + index]),
                    index,
                    public,
                    zones[index] if zones else None,
                )
            )

    logger.debug(f"Declared network {name} ({network}) across {az_count} AZs")

    return NetworkTopology(
        name=name,
        cidr=str(network),
        az_count=az_count,
        subnets=tuple(subnets),
        nat_gateways=nat_gateways,
        availability_zones=zones,
    )


class VpcComponent(ComponentResource):
    def __init__(self, name: str, network: NetworkTopology, opts: ResourceOptions = None):
        super().__init__("custom:networking:VPC", name, None, opts)

        self.availability_zones = network.availability_zones or self._available_zones(network.az_count)

        self.vpc = aws.ec2.Vpc(
            f"{name}-vpc",
            cidr_block=network.cidr,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            tags={"Name": network.name},
            opts=ResourceOptions(parent=self),
        )

        self.igw = aws.ec2.InternetGateway(
            f"{name}-igw",
            vpc_id=self.vpc.id,
            opts=ResourceOptions(parent=self),
        )

        self.public_route_table = aws.ec2.RouteTable(
            f"{name}-publicRouteTable",
            vpc_id=self.vpc.id,
            routes=[
                {
                    "cidr_block": "0.0.0.0/0",
                    "gateway_id": self.igw.id,
                }
            ],
            opts=ResourceOptions(parent=self),
        )

        self.public_subnets = []
        for subnet in network.public_subnets:
            resource = aws.ec2.Subnet(
                f"{name}-{subnet.name}",
                vpc_id=self.vpc.id,
                cidr_block=subnet.cidr,
                availability_zone=self.availability_zones[subnet.az_index],
                map_public_ip_on_launch=True,
                tags={"Name": subnet.name},
                opts=ResourceOptions(parent=self),
            )
            aws.ec2.RouteTableAssociation(
                f"{name}-{subnet.name}-rta",
                subnet_id=resource.id,
                route_table_id=self.public_route_table.id,
                opts=ResourceOptions(parent=self),
            )
            self.public_subnets.append(resource)

        # NAT gateways sit in the first public subnets
        self.nat_gateways = []
        for index in range(network.nat_gateways):
            eip = aws.ec2.Eip(
                f"{name}-natEip-{index + 1}",
                domain="vpc",
                opts=ResourceOptions(parent=self),
            )
            self.nat_gateways.append(
                aws.ec2.NatGateway(
                    f"{name}-natGateway-{index + 1}",
                    subnet_id=self.public_subnets[index].id,
                    allocation_id=eip.id,
                    opts=ResourceOptions(parent=self, depends_on=[self.igw]),
                )
            )

        self.private_subnets = []
        for index, subnet in enumerate(network.private_subnets):
            resource = aws.ec2.Subnet(
                f"{name}-{subnet.name}",
                vpc_id=self.vpc.id,
                cidr_block=subnet.cidr,
                availability_zone=self.availability_zones[subnet.az_index],
                map_public_ip_on_launch=False,
                tags={"Name": subnet.name},
                opts=ResourceOptions(parent=self),
            )
            nat = self.nat_gateways[index] if index < len(self.nat_gateways) else self.nat_gateways[0]
            route_table = aws.ec2.RouteTable(
                f"{name}-{subnet.name}-rt",
                vpc_id=self.vpc.id,
                routes=[
                    {
                        "cidr_block": "0.0.0.0/0",
                        "nat_gateway_id": nat.id,
                    }
                ],
                opts=ResourceOptions(parent=self),
            )
            aws.ec2.RouteTableAssociation(
                f"{name}-{subnet.name}-rta",
                subnet_id=resource.id,
                route_table_id=route_table.id,
                opts=ResourceOptions(parent=self),
            )
            self.private_subnets.append(resource)

        self.register_outputs({
            "vpc_id": self.vpc.id,
            "public_subnet_ids": [s.id for s in self.public_subnets],
            "private_subnet_ids": [s.id for s in self.private_subnets],
        })

    def _available_zones(self, az_count: int) -> tuple[str, ...]:
        result = aws.get_availability_zones(state="available", opts=pulumi.InvokeOptions(parent=self))
        zones = _check_zones(sorted(result.names or []), az_count)
        logger.info(f"Using availability zones {list(zones)}")
        return zones
