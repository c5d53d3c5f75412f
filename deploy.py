"""Drives the Pulumi program through the Automation API."""
import os

from loguru import logger
from pulumi import automation as auto

PROJECT_NAME = "webfront-infra"
work_dir = os.path.dirname(os.path.abspath(__file__))

# environment variable -> stack config key
ENV_OVERRIDES = {
    "AZ_COUNT": "az_count",
    "VPC_CIDR": "vpc_cidr",
    "NAT_GATEWAYS": "nat_gateways",
    "ECS_CLUSTER_NAME": "cluster_name",
    "ECS_TASK_CPU": "cpu",
    "ECS_TASK_MEMORY": "memory",
    "ECS_CPU_ARCHITECTURE": "cpu_architecture",
    "CONTAINER_IMAGE": "image",
    "CONTAINER_PORT": "container_port",
    "LOG_STREAM_PREFIX": "log_stream_prefix",
    "DESIRED_COUNT": "desired_count",
    "HEALTH_CHECK_PATH": "health_check_path",
    "ASSETS_BUCKET_NAME": "bucket_name",
}


def create_pulumi_program():
    import pulumi
    from config.config import load_settings
    from infrastructure.ecs.ecs import EcsComponent
    from infrastructure.iam.roles import ExecutionRoleComponent
    from infrastructure.networking.security_groups import SecurityGroupsComponent
    from infrastructure.networking.vpc import VpcComponent
    from infrastructure.storage.assets import AssetBucketComponent
    from infrastructure.topology import synthesize

    topology = synthesize(load_settings())

    vpc = VpcComponent("main", topology.network)
    security_groups = SecurityGroupsComponent("main", topology.service, vpc)
    assets = AssetBucketComponent("main", topology.asset_store)
    role = ExecutionRoleComponent(
        "main",
        topology.execution_role,
        opts=pulumi.ResourceOptions(depends_on=[assets]),
    )
    ecs = EcsComponent("main", topology.service, vpc, security_groups, role)

    pulumi.export("asset_bucket_name", assets.bucket.bucket)
    pulumi.export("asset_base_url", topology.asset_store.base_url)
    pulumi.export("load_balancer_dns_name", ecs.alb.dns_name)
    pulumi.export("ecs_cluster_name", ecs.cluster.name)
    pulumi.export("ecs_service_name", ecs.service.name)


def config_overrides_from_env(environ=None) -> dict:
    """Stack config values taken from environment variables, when set."""
    environ = os.environ if environ is None else environ
    return {
        key: auto.ConfigValue(environ[var])
        for var, key in ENV_OVERRIDES.items()
        if environ.get(var)
    }


def select_stack(stack_name=None, environ=None):
    environ = os.environ if environ is None else environ
    stack_name = stack_name or environ.get("PULUMI_STACK_NAME", "dev")

    stack = auto.create_or_select_stack(
        stack_name=stack_name,
        project_name=PROJECT_NAME,
        program=create_pulumi_program,
        opts=auto.LocalWorkspaceOptions(work_dir=work_dir),
    )
    logger.info(f"Stack created/selected: {stack.name}")

    if environ.get("AWS_DEFAULT_REGION"):
        stack.set_config("aws:region", auto.ConfigValue(environ["AWS_DEFAULT_REGION"]))

    config_values = config_overrides_from_env(environ)
    if config_values:
        stack.set_all_config(config_values)
        logger.info(f"Applied {len(config_values)} config overrides from environment variables")

    return stack


def up(stack_name=None, environ=None) -> dict:
    stack = select_stack(stack_name, environ)
    try:
        logger.info("Running stack.up()...")
        up_res = stack.up(on_output=logger.info)
    except Exception as e:
        logger.exception(f"Failed to provision: {e}")
        raise

    logger.info(f"Stack update complete. Summary: {up_res.summary}")
    outputs = {k: v.value for k, v in up_res.outputs.items()}
    logger.info(f"✓ Load balancer: {outputs.get('load_balancer_dns_name')}")
    return outputs


def preview(stack_name=None, environ=None):
    stack = select_stack(stack_name, environ)
    logger.info("Running stack.preview()...")
    result = stack.preview(on_output=logger.info)
    logger.info(f"Preview complete. Changes: {result.change_summary}")
    return result.change_summary


def destroy(stack_name=None, environ=None) -> None:
    stack = select_stack(stack_name, environ)
    try:
        destroy_res = stack.destroy(on_output=logger.info)
    except Exception as e:
        logger.exception(f"Failed to deprovision: {e}")
        raise
    logger.info(f"Stack destroyed. Summary: {destroy_res.summary}")


def stack_outputs(stack_name=None) -> dict:
    """Outputs of an existing stack, or {} when the stack does not exist."""
    stack_name = stack_name or os.getenv("PULUMI_STACK_NAME", "dev")
    try:
        stack = auto.select_stack(
            stack_name=stack_name,
            project_name=PROJECT_NAME,
            program=create_pulumi_program,
            opts=auto.LocalWorkspaceOptions(work_dir=work_dir),
        )
    except auto.StackNotFoundError:
        logger.info(f"No resources found. Stack {stack_name} does not exist.")
        return {}
    return {k: v.value for k, v in stack.outputs().items()}
