"""Least-privilege task execution role.

The role is the union of a provider-managed baseline and two inline
statements: the fixed image-pull/log-delivery actions, and storage reads
scoped to the asset bucket. Nothing else can be added.
"""
import json
from dataclasses import dataclass
from typing import Iterable

import pulumi_aws as aws
from loguru import logger
from pulumi import ComponentResource, ResourceOptions

from infrastructure.errors import ConfigurationError, ScopeViolationError

TASK_EXECUTION_PRINCIPAL = "ecs-tasks.amazonaws.com"
DEFAULT_MANAGED_BASELINES = ("service-role/AmazonECSTaskExecutionRolePolicy",)

BASELINE_ACTIONS = (
    "ecr:GetAuthorizationToken",
    "ecr:BatchCheckLayerAvailability",
    "ecr:DescribeRepositories",
    "ecr:GetDownloadUrlForLayer",
    "ecr:BatchGetImage",
    "logs:CreateLogStream",
    "logs:PutLogEvents",
)

STORAGE_READ_ACTIONS = frozenset({"s3:GetObject", "s3:GetObjectVersion", "s3:ListBucket"})
DEFAULT_STORAGE_ACTIONS = ("s3:GetObject", "s3:ListBucket")


@dataclass(frozen=True)
class PolicyStatement:
    sid: str
    actions: tuple[str, ...]
    resources: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "Sid": self.sid,
            "Effect": "Allow",
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }


@dataclass(frozen=True)
class AccessRole:
    name: str
    trust_principal: str
    managed_policy_arns: tuple[str, ...]
    statements: tuple[PolicyStatement, ...]

    @property
    def actions(self) -> frozenset:
        return frozenset(a for s in self.statements for a in s.actions)

    def assume_role_policy(self) -> dict:
        return {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"Service": self.trust_principal},
                    "Action": "sts:AssumeRole",
                }
            ],
        }

    def inline_policy(self) -> dict:
        return {
            "Version": "2012-10-17",
            "Statement": [s.to_dict() for s in self.statements],
        }


def _managed_policy_arn(name: str) -> str:
    if name.startswith("arn:"):
        return name
    return f"arn:aws:iam::aws:policy/{name}"


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    # a lone string is one value, not a sequence of characters
    if isinstance(values, str):
        values = (values,)
    return tuple(dict.fromkeys(values))


def _check_storage_scope(scope: str) -> None:
    """
    Accept ``arn:<partition>:s3:::<bucket>[/<key>]`` with a literal bucket name.

    Wildcards are only allowed in the object key, so a scope can never reach
    past one bucket.
    """
    if not isinstance(scope, str):
        raise ScopeViolationError(f"Resource scope must be an ARN string, got {scope!r}")
    bucket_arn = scope.split("/", 1)[0]
    if "*" in bucket_arn or "?" in bucket_arn:
        raise ScopeViolationError(f"Storage actions cannot be granted on wildcard resource {scope!r}")
    parts = bucket_arn.split(":")
    if len(parts) != 6 or parts[0] != "arn" or not parts[1] or parts[2] != "s3" or parts[3] or parts[4] or not parts[5]:
        raise ScopeViolationError(f"Storage actions can only be scoped to S3 bucket ARNs, got {scope!r}")


def build_access_role(
    trust_principal: str = TASK_EXECUTION_PRINCIPAL,
    managed_baselines: Iterable[str] = DEFAULT_MANAGED_BASELINES,
    extra_actions: Iterable[str] = DEFAULT_STORAGE_ACTIONS,
    resource_scopes: Iterable[str] = (),
    name: str = "task-execution-role",
) -> AccessRole:
    if trust_principal != TASK_EXECUTION_PRINCIPAL:
        raise ScopeViolationError(
            f"Execution role can only be assumed by {TASK_EXECUTION_PRINCIPAL}, got {trust_principal!r}"
        )

    extra_actions = _dedupe(extra_actions)
    resource_scopes = _dedupe(resource_scopes)

    not_allowed = [a for a in extra_actions if a not in STORAGE_READ_ACTIONS]
    if not_allowed:
        raise ScopeViolationError(
            f"Only storage read/list actions may be scoped to the asset bucket, got {not_allowed}"
        )
    for scope in resource_scopes:
        _check_storage_scope(scope)
    if extra_actions and not resource_scopes:
        raise ConfigurationError("Storage actions need at least one resource scope")

    statements = [PolicyStatement("ImagePullAndLogDelivery", BASELINE_ACTIONS, ("*",))]
    if extra_actions:
        statements.append(PolicyStatement("AssetStoreRead", extra_actions, resource_scopes))

    logger.debug(f"Declared role {name} with {len(statements)} inline statements")

    return AccessRole(
        name=name,
        trust_principal=trust_principal,
        managed_policy_arns=tuple(_managed_policy_arn(m) for m in _dedupe(managed_baselines)),
        statements=tuple(statements),
    )


class ExecutionRoleComponent(ComponentResource):
    def __init__(self, name: str, role: AccessRole, opts: ResourceOptions = None):
        super().__init__("custom:iam:ExecutionRole", name, None, opts)

        self.role = aws.iam.Role(
            f"{name}-ecsTaskExecutionRole",
            name=role.name,
            assume_role_policy=json.dumps(role.assume_role_policy()),
            opts=ResourceOptions(parent=self),
        )

        for index, policy_arn in enumerate(role.managed_policy_arns):
            aws.iam.RolePolicyAttachment(
                f"{name}-ecsTaskExecutionRolePolicy-{index}",
                role=self.role.name,
                policy_arn=policy_arn,
                opts=ResourceOptions(parent=self),
            )

        self.inline_policy = aws.iam.RolePolicy(
            f"{name}-ecsTaskExecutionInlinePolicy",
            role=self.role.id,
            policy=json.dumps(role.inline_policy()),
            opts=ResourceOptions(parent=self),
        )

        self.register_outputs({
            "role_arn": self.role.arn,
        })
