import os
from typing import Optional

import pulumi
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError

from infrastructure.errors import ConfigurationError

load_dotenv()


class TopologySettings(BaseModel):
    """Every value the topology can be configured with."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    stack_name: str = "dev"
    region: str = "us-east-1"

    # networking
    az_count: int = 2
    vpc_cidr: str = "10.0.0.0/16"
    nat_gateways: Optional[int] = None
    # pin zone names, otherwise the first az_count available zones are used
    availability_zones: Optional[tuple[str, ...]] = None

    # ecs
    cluster_name: Optional[str] = None
    container_insights: bool = False
    cpu: int = 512
    memory: int = 1024
    cpu_architecture: str = "X86_64"
    image: str = "<container-image-uri>"
    container_port: int = 3000
    log_stream_prefix: str = "web"
    log_retention_days: Optional[int] = None
    desired_count: int = 2
    health_check_path: str = "/"

    # static assets
    bucket_name: Optional[str] = None
    bucket_versioned: bool = True
    bucket_public_read: bool = True
    bucket_block_acls_only: bool = True
    bucket_destroy_on_teardown: bool = True
    bucket_auto_purge: bool = True
    bucket_noncurrent_version_expiration_days: Optional[int] = None


_STR_KEYS = ("vpc_cidr", "cluster_name", "cpu_architecture", "image", "log_stream_prefix",
             "health_check_path", "bucket_name")
_INT_KEYS = ("az_count", "nat_gateways", "cpu", "memory", "container_port", "log_retention_days",
             "desired_count", "bucket_noncurrent_version_expiration_days")
_BOOL_KEYS = ("container_insights", "bucket_versioned", "bucket_public_read", "bucket_block_acls_only",
              "bucket_destroy_on_teardown", "bucket_auto_purge")


def load_settings(config=None, aws_config=None, stack_name: Optional[str] = None) -> TopologySettings:
    """
    Read TopologySettings from Pulumi stack config.

    Unset keys fall back to the model defaults. The region comes from the
    ``region`` key, then ``aws:region``, then AWS_DEFAULT_REGION.
    """
    config = config or pulumi.Config()
    aws_config = aws_config or pulumi.Config("aws")

    values = {}
    try:
        for key in _STR_KEYS:
            values[key] = config.get(key)
        for key in _INT_KEYS:
            values[key] = config.get_int(key)
        for key in _BOOL_KEYS:
            values[key] = config.get_bool(key)
        values["availability_zones"] = config.get_object("availability_zones")
        values["region"] = config.get("region") or aws_config.get("region") or os.getenv("AWS_DEFAULT_REGION")
    except pulumi.ConfigTypeError as e:
        raise ConfigurationError(str(e)) from e

    values["stack_name"] = stack_name or pulumi.get_stack()
    values = {k: v for k, v in values.items() if v is not None}

    try:
        return TopologySettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid stack configuration: {e}") from e
