"""Rollout helpers used after a new image has been pushed."""
import re

import boto3
from botocore.exceptions import ClientError
from loguru import logger

from infrastructure.errors import ConfigurationError, MissingImageError

ECR_IMAGE = re.compile(
    r"^(?P<registry>\d{12})\.dkr\.ecr\.(?P<region>[a-z0-9-]+)\.amazonaws\.com/"
    r"(?P<repository>[^:@]+)(?::(?P<tag>[^@]+))?(?:@(?P<digest>sha256:[0-9a-f]{64}))?$"
)

WAITER_CONFIG = {
    "Delay": 10,       # seconds between checks
    "MaxAttempts": 60  # ~10 minutes total
}


def parse_ecr_image(image: str):
    match = ECR_IMAGE.match(image)
    return match.groupdict() if match else None


def ensure_image_exists(image: str, ecr_client=None) -> bool:
    """
    Pre-flight check that an image reference can be pulled.

    Placeholders fail. ECR references are looked up with DescribeImages.
    Any other registry is not checked and returns False.
    """
    if not image or image.startswith("<"):
        raise MissingImageError(f"Image reference {image!r} is a placeholder")

    ref = parse_ecr_image(image)
    if ref is None:
        logger.info(f"Skipping image check for non-ECR reference {image}")
        return False

    ecr_client = ecr_client or boto3.client("ecr", region_name=ref["region"])
    image_id = {"imageDigest": ref["digest"]} if ref["digest"] else {"imageTag": ref["tag"] or "latest"}

    try:
        ecr_client.describe_images(
            registryId=ref["registry"],
            repositoryName=ref["repository"],
            imageIds=[image_id],
        )
    except ClientError as e:
        code = e.response["Error"]["Code"]
        if code in ("ImageNotFoundException", "RepositoryNotFoundException"):
            raise MissingImageError(f"Image {image} not found: {code}") from e
        logger.exception(f"Failed to check image {image}: {e}")
        raise

    logger.info(f"✓ Found image {image}")
    return True


def _wait_stable(ecs_client, cluster_name, service_name):
    logger.info(f"Waiting for ECS service {service_name} in {cluster_name} to become stable...")
    waiter = ecs_client.get_waiter("services_stable")
    waiter.wait(cluster=cluster_name, services=[service_name], WaiterConfig=WAITER_CONFIG)
    logger.info(f"✓ Service {service_name} is stable")


def force_new_deployment(cluster_name, service_name, wait=True, ecs_client=None) -> str:
    """Start a new rollout of the service and return the new deployment id."""
    ecs_client = ecs_client or boto3.client("ecs")

    logger.info(f"Forcing new deployment of {service_name} in {cluster_name}")
    response = ecs_client.update_service(
        cluster=cluster_name,
        service=service_name,
        forceNewDeployment=True,
    )
    # the PRIMARY deployment is listed first
    deployment_id = response["service"]["deployments"][0]["id"]

    if wait:
        _wait_stable(ecs_client, cluster_name, service_name)
    return deployment_id


def scale_service(cluster_name, service_name, desired_count, wait=True, ecs_client=None) -> None:
    if isinstance(desired_count, bool) or not isinstance(desired_count, int) or desired_count < 1:
        raise ConfigurationError(f"desired_count must be an integer >= 1, got {desired_count!r}")

    ecs_client = ecs_client or boto3.client("ecs")
    logger.info(f"Scaling {service_name} in {cluster_name} to {desired_count} tasks")
    ecs_client.update_service(
        cluster=cluster_name,
        service=service_name,
        desiredCount=desired_count,
    )
    if wait:
        _wait_stable(ecs_client, cluster_name, service_name)


def redeploy(image, cluster_name, service_name, check_image=True, wait=True, ecs_client=None, ecr_client=None) -> str:
    if check_image:
        ensure_image_exists(image, ecr_client=ecr_client)
    return force_new_deployment(cluster_name, service_name, wait=wait, ecs_client=ecs_client)
