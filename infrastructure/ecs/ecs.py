import json

import pulumi_aws as aws
from pulumi import ComponentResource, ResourceOptions

from infrastructure.ecs.service import ServiceSpec


class EcsComponent(ComponentResource):
    """Cluster, log group, task definition, load balancer and service."""

    def __init__(
        self,
        name: str,
        service: ServiceSpec,
        vpc_component,
        security_groups,
        role_component,
        opts: ResourceOptions = None,
    ):
        super().__init__("custom:compute:ECS", name, None, opts)

        task = service.task_spec
        lb = service.load_balancer

        self.cluster = aws.ecs.Cluster(
            f"{name}-cluster",
            name=service.cluster.name,
            settings=[
                {
                    "name": "containerInsights",
                    "value": "enabled" if service.cluster.container_insights else "disabled",
                }
            ],
            opts=ResourceOptions(parent=self),
        )

        self.log_group = aws.cloudwatch.LogGroup(
            f"{name}-logGroup",
            name=task.log_configuration.log_group,
            retention_in_days=task.log_configuration.retention_days,
            opts=ResourceOptions(parent=self),
        )

        self.task_definition = aws.ecs.TaskDefinition(
            f"{name}-taskDefinition",
            family=task.family,
            container_definitions=json.dumps(task.container_definitions()),
            runtime_platform={
                "operating_system_family": "LINUX",
                "cpu_architecture": task.cpu_architecture,
            },
            requires_compatibilities=["FARGATE"],
            network_mode="awsvpc",
            cpu=str(task.cpu),
            memory=str(task.memory_mib),
            execution_role_arn=role_component.role.arn,
            opts=ResourceOptions(parent=self, depends_on=[self.log_group]),
        )

        self.alb = aws.lb.LoadBalancer(
            f"{name}-alb",
            name=lb.name,
            load_balancer_type="application",
            internal=lb.internal,
            subnets=[s.id for s in vpc_component.public_subnets],
            security_groups=[security_groups.alb_sg.id],
            opts=ResourceOptions(parent=self),
        )

        self.target_group = aws.lb.TargetGroup(
            f"{name}-targetGroup",
            name=lb.target_group_name,
            port=lb.target_port,
            protocol="HTTP",
            target_type="ip",
            vpc_id=vpc_component.vpc.id,
            health_check={
                "path": lb.health_check.path,
                "healthy_threshold": lb.health_check.healthy_threshold,
                "unhealthy_threshold": lb.health_check.unhealthy_threshold,
                "timeout": lb.health_check.timeout,
                "interval": lb.health_check.interval,
            },
            opts=ResourceOptions(parent=self),
        )

        self.listener = aws.lb.Listener(
            f"{name}-listener",
            load_balancer_arn=self.alb.arn,
            port=lb.listener_port,
            protocol="HTTP",
            default_actions=[
                {
                    "type": "forward",
                    "target_group_arn": self.target_group.arn,
                }
            ],
            opts=ResourceOptions(parent=self),
        )

        self.service = aws.ecs.Service(
            f"{name}-service",
            name=service.name,
            cluster=self.cluster.arn,
            task_definition=self.task_definition.arn,
            desired_count=service.desired_count,
            launch_type="FARGATE",
            deployment_minimum_healthy_percent=service.deployment_minimum_healthy_percent,
            deployment_maximum_percent=service.deployment_maximum_percent,
            network_configuration=aws.ecs.ServiceNetworkConfigurationArgs(
                subnets=[s.id for s in vpc_component.private_subnets],
                security_groups=[security_groups.service_sg.id],
                assign_public_ip=service.assign_public_ip,
            ),
            load_balancers=[
                aws.ecs.ServiceLoadBalancerArgs(
                    target_group_arn=self.target_group.arn,
                    container_name=task.container_name,
                    container_port=lb.target_port,
                )
            ],
            opts=ResourceOptions(parent=self, depends_on=[self.listener]),
        )

        self.register_outputs({
            "cluster_name": self.cluster.name,
            "service_name": self.service.name,
            "load_balancer_dns_name": self.alb.dns_name,
        })
