from dataclasses import dataclass
from typing import Optional

from loguru import logger

from infrastructure.errors import ConfigurationError, InvalidShapeError
from infrastructure.iam.roles import AccessRole

# Fargate task sizes: cpu units -> allowed memory (MiB)
TASK_SHAPES = {
    256: (512, 1024, 2048),
    512: tuple(range(1024, 4096 + 1, 1024)),
    1024: tuple(range(2048, 8192 + 1, 1024)),
    2048: tuple(range(4096, 16384 + 1, 1024)),
    4096: tuple(range(8192, 30720 + 1, 1024)),
    8192: tuple(range(16384, 61440 + 1, 4096)),
    16384: tuple(range(32768, 122880 + 1, 8192)),
}

CPU_ARCHITECTURES = ("X86_64", "ARM64")

# retention periods CloudWatch Logs accepts; None keeps events forever
LOG_RETENTION_DAYS = (
    1, 3, 5, 7, 14, 30, 60, 90, 120, 150, 180, 365, 400, 545, 731,
    1096, 1827, 2192, 2557, 2922, 3288, 3653,
)


@dataclass(frozen=True)
class PortMapping:
    container_port: int
    protocol: str = "tcp"


@dataclass(frozen=True)
class LogConfiguration:
    log_group: str
    stream_prefix: str
    region: str
    retention_days: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "logDriver": "awslogs",
            "options": {
                "awslogs-group": self.log_group,
                "awslogs-region": self.region,
                "awslogs-stream-prefix": self.stream_prefix,
            },
        }


@dataclass(frozen=True)
class ContainerSpec:
    """Fargate task definition with its single container."""

    family: str
    cpu: int
    memory_mib: int
    execution_role: AccessRole
    container_name: str
    image: str
    port_mappings: tuple[PortMapping, ...]
    log_configuration: LogConfiguration
    cpu_architecture: str = "X86_64"

    @property
    def container_port(self) -> int:
        return self.port_mappings[0].container_port

    def container_definitions(self) -> list:
        return [
            {
                "name": self.container_name,
                "image": self.image,
                "essential": True,
                "portMappings": [
                    {"containerPort": p.container_port, "hostPort": p.container_port, "protocol": p.protocol}
                    for p in self.port_mappings
                ],
                "logConfiguration": self.log_configuration.to_dict(),
            }
        ]


def check_task_shape(cpu: int, memory_mib: int) -> None:
    allowed = TASK_SHAPES.get(cpu)
    if allowed is None:
        raise InvalidShapeError(f"Unsupported task cpu {cpu!r}; expected one of {sorted(TASK_SHAPES)}")
    if memory_mib not in allowed:
        raise InvalidShapeError(f"cpu={cpu} requires memory in {list(allowed)} MiB, got {memory_mib!r}")


def build_task_spec(
    cpu: int,
    memory_mib: int,
    role: AccessRole,
    image: str,
    container_port: int,
    log_stream_prefix: str,
    family: str = "web",
    container_name: str = "web",
    region: str = "us-east-1",
    cpu_architecture: str = "X86_64",
    log_retention_days: Optional[int] = None,
) -> ContainerSpec:
    """
    Compose a Fargate task definition with exactly one container.

    The image is kept as an opaque reference. Only one port mapping is
    supported by this contract.
    """
    check_task_shape(cpu, memory_mib)

    if not isinstance(role, AccessRole):
        raise ConfigurationError("Task definition needs an execution role")
    if not isinstance(image, str) or not image.strip():
        raise ConfigurationError("Container image reference must be a non-empty string")
    if isinstance(container_port, bool) or not isinstance(container_port, int) or not 1 <= container_port <= 65535:
        raise ConfigurationError(f"container_port must be between 1 and 65535, got {container_port!r}")
    if not log_stream_prefix:
        raise ConfigurationError("log_stream_prefix must not be empty")
    if cpu_architecture not in CPU_ARCHITECTURES:
        raise ConfigurationError(f"cpu_architecture must be one of {CPU_ARCHITECTURES}, got {cpu_architecture!r}")
    if log_retention_days is not None and (
        isinstance(log_retention_days, bool) or log_retention_days not in LOG_RETENTION_DAYS
    ):
        raise ConfigurationError(
            f"log_retention_days must be one of {LOG_RETENTION_DAYS}, got {log_retention_days!r}"
        )

    logs = LogConfiguration(
        log_group=f"/ecs/{family}",
        stream_prefix=log_stream_prefix,
        region=region,
        retention_days=log_retention_days,
    )

    logger.debug(f"Declared task {family}: cpu={cpu} memory={memory_mib} image={image}")

    return ContainerSpec(
        family=family,
        cpu=cpu,
        memory_mib=memory_mib,
        execution_role=role,
        container_name=container_name,
        image=image,
        port_mappings=(PortMapping(container_port),),
        log_configuration=logs,
        cpu_architecture=cpu_architecture,
    )
