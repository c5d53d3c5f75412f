import pulumi
import pytest

from config.config import TopologySettings

AVAILABLE_ZONES = ["eu-west-2a", "eu-west-2b", "eu-west-2c"]


class PulumiMocks(pulumi.runtime.Mocks):
    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        outputs = dict(args.inputs)
        outputs.setdefault("arn", f"arn:aws:mock:::{args.name}")
        if args.typ == "aws:lb/loadBalancer:LoadBalancer":
            outputs["dnsName"] = f"{args.name}.elb.amazonaws.com"
        return [f"{args.name}_id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        if args.token == "aws:index/getAvailabilityZones:getAvailabilityZones":
            return {"names": AVAILABLE_ZONES, "zoneIds": [f"euw2-az{i + 1}" for i in range(len(AVAILABLE_ZONES))]}
        return {}


pulumi.runtime.set_mocks(PulumiMocks(), preview=False)


@pytest.fixture
def settings() -> TopologySettings:
    return TopologySettings(
        stack_name="test",
        region="eu-west-2",
        az_count=2,
        cpu=512,
        memory=1024,
        desired_count=2,
        image="123456789012.dkr.ecr.eu-west-2.amazonaws.com/web:v1",
        bucket_public_read=True,
        bucket_block_acls_only=True,
    )
