import pulumi_aws as aws
from pulumi import ComponentResource, ResourceOptions

from infrastructure.ecs.service import ServiceSpec


class SecurityGroupsComponent(ComponentResource):
    """
    Two groups: the load balancer accepts the listener port from anywhere,
    the tasks accept the container port from the load balancer only.
    """

    def __init__(self, name: str, service: ServiceSpec, vpc_component, opts: ResourceOptions = None):
        super().__init__("custom:networking:SecurityGroups", name, None, opts)

        lb = service.load_balancer

        self.alb_sg = aws.ec2.SecurityGroup(
            f"{name}-securityGroupALB",
            vpc_id=vpc_component.vpc.id,
            description="Public HTTP to the load balancer",
            ingress=[
                {
                    "protocol": "tcp",
                    "from_port": lb.listener_port,
                    "to_port": lb.listener_port,
                    "cidr_blocks": ["0.0.0.0/0"],
                },
            ],
            egress=[
                {
                    "protocol": "-1",
                    "from_port": 0,
                    "to_port": 0,
                    "cidr_blocks": ["0.0.0.0/0"],
                }
            ],
            opts=ResourceOptions(parent=self)
        )

        self.service_sg = aws.ec2.SecurityGroup(
            f"{name}-securityGroupService",
            vpc_id=vpc_component.vpc.id,
            description="Load balancer to tasks",
            ingress=[
                {
                    "protocol": "tcp",
                    "from_port": lb.target_port,
                    "to_port": lb.target_port,
                    "security_groups": [self.alb_sg.id],
                }
            ],
            egress=[
                {
                    "protocol": "-1",
                    "from_port": 0,
                    "to_port": 0,
                    "cidr_blocks": ["0.0.0.0/0"],
                }
            ],
            opts=ResourceOptions(parent=self)
        )

        self.register_outputs({
            "alb_sg_id": self.alb_sg.id,
            "service_sg_id": self.service_sg.id,
        })
