"""Unit tests for infrastructure/networking/vpc.py."""

import ipaddress
import itertools

import pytest

from infrastructure.errors import ConfigurationError
from infrastructure.networking.vpc import MAX_AZS, build_network


@pytest.mark.parametrize("az_count", range(1, MAX_AZS + 1))
def test_two_subnets_per_az_without_overlap(az_count: int) -> None:
    network = build_network(az_count)

    assert len(network.subnets) == 2 * az_count
    assert len(network.public_subnets) == az_count
    assert len(network.private_subnets) == az_count

    blocks = [ipaddress.ip_network(s.cidr) for s in network.subnets]
    for a, b in itertools.combinations(blocks, 2):
        assert not a.overlaps(b)
    assert all(b.subnet_of(ipaddress.ip_network(network.cidr)) for b in blocks)


def test_each_az_has_one_public_and_one_private_subnet() -> None:
    network = build_network(3)

    assert network.availability_zones == ()
    for index in range(3):
        flags = sorted(s.public for s in network.subnets if s.az_index == index)
        assert flags == [False, True]
    # names are left to the account lookup at render time
    assert all(s.availability_zone is None for s in network.subnets)


def test_explicit_availability_zones_are_pinned() -> None:
    network = build_network(2, availability_zones=["ap-northeast-1a", "ap-northeast-1c", "ap-northeast-1d"])

    assert network.availability_zones == ("ap-northeast-1a", "ap-northeast-1c")
    assert [s.availability_zone for s in network.public_subnets] == ["ap-northeast-1a", "ap-northeast-1c"]
    assert [s.availability_zone for s in network.private_subnets] == ["ap-northeast-1a", "ap-northeast-1c"]


@pytest.mark.parametrize(
    "zones",
    [["us-west-1a"], ["us-west-1a", "us-west-1a"], ["us-west-1a", ""]],
)
def test_explicit_availability_zones_must_cover_az_count(zones) -> None:
    with pytest.raises(ConfigurationError, match="zone"):
        build_network(2, availability_zones=zones)


def test_subnet_layout_is_deterministic() -> None:
    network = build_network(2)
    assert [s.cidr for s in network.subnets] == [
        "10.0.0.0/18",
        "10.0.64.0/18",
        "10.0.128.0/18",
        "10.0.192.0/18",
    ]
    assert build_network(2) == network


@pytest.mark.parametrize("az_count", [0, -1, MAX_AZS + 1, True, 2.0, "2"])
def test_az_count_out_of_range(az_count) -> None:
    with pytest.raises(ConfigurationError):
        build_network(az_count)


def test_nat_gateways_default_to_one_per_az() -> None:
    assert build_network(3).nat_gateways == 3
    assert build_network(3, nat_gateways=1).nat_gateways == 1


@pytest.mark.parametrize("nat_gateways", [0, 3])
def test_nat_gateways_out_of_range(nat_gateways: int) -> None:
    with pytest.raises(ConfigurationError, match="nat_gateways"):
        build_network(2, nat_gateways=nat_gateways)


def test_invalid_base_cidr() -> None:
    with pytest.raises(ConfigurationError, match="Invalid base CIDR"):
        build_network(2, base_cidr="10.0.0.0/33")


def test_base_cidr_too_small() -> None:
    with pytest.raises(ConfigurationError, match="too small"):
        build_network(2, base_cidr="10.0.0.0/27")
