import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from nodekeeper.aws_client import AwsClient
from nodekeeper.launch.provider import LaunchResourceProvider
from nodekeeper.model import InstanceProfile, InstanceRecord, Role, ScalingGroupSnapshot
from nodekeeper.types import Json

log = logging.getLogger("nodekeeper.cloud")


class NodeGroupCloud(ABC):
    """Cloud capabilities needed to discover the resources owned by a node group."""

    @abstractmethod
    def list_scaling_groups(self) -> List[ScalingGroupSnapshot]:
        pass

    @abstractmethod
    def resolve_role(self, name: str) -> Optional[Role]:
        pass

    @abstractmethod
    def resolve_instance_profile(self, name: str) -> Optional[InstanceProfile]:
        pass

    @abstractmethod
    def resolve_vpc(self, cluster_name: str) -> Optional[str]:
        pass


class AwsNodeGroupCloud(NodeGroupCloud):
    def __init__(self, client: AwsClient, launch_provider: LaunchResourceProvider) -> None:
        self.client = client
        # scaling groups refer to launch resources in a provider specific way
        self.launch_provider = launch_provider

    def scaling_group_from(self, js: Json) -> ScalingGroupSnapshot:
        return ScalingGroupSnapshot(
            name=js["AutoScalingGroupName"],
            arn=js.get("AutoScalingGroupARN"),
            tags={t["Key"]: t.get("Value", "") for t in js.get("Tags") or [] if "Key" in t},
            min_size=js.get("MinSize") or 0,
            max_size=js.get("MaxSize") or 0,
            desired_capacity=js.get("DesiredCapacity") or 0,
            instances=[
                InstanceRecord(
                    instance_id=i["InstanceId"],
                    launch_reference=self.launch_provider.instance_reference(i),
                    lifecycle_state=i.get("LifecycleState"),
                    availability_zone=i.get("AvailabilityZone"),
                )
                for i in js.get("Instances") or []
            ],
            launch_reference=self.launch_provider.reference_of(js),
        )

    def list_scaling_groups(self) -> List[ScalingGroupSnapshot]:
        return [
            self.scaling_group_from(js)
            for js in self.client.list("autoscaling", "describe-auto-scaling-groups", "AutoScalingGroups")
        ]

    def resolve_role(self, name: str) -> Optional[Role]:
        js = self.client.get("iam", "get-role", "Role", expected_errors=["NoSuchEntity"], RoleName=name)
        if not js:
            log.debug(f"IAM role {name} does not exist.")
            return None
        return Role(name=js["RoleName"], arn=js.get("Arn"))

    def resolve_instance_profile(self, name: str) -> Optional[InstanceProfile]:
        js = self.client.get(
            "iam", "get-instance-profile", "InstanceProfile", expected_errors=["NoSuchEntity"], InstanceProfileName=name
        )
        if not js:
            log.debug(f"IAM instance profile {name} does not exist.")
            return None
        return InstanceProfile(
            name=js["InstanceProfileName"],
            arn=js.get("Arn"),
            role_names=[r["RoleName"] for r in js.get("Roles") or [] if "RoleName" in r],
        )

    def resolve_vpc(self, cluster_name: str) -> Optional[str]:
        return self.client.get(  # type: ignore
            "eks",
            "describe-cluster",
            "cluster.resourcesVpcConfig.vpcId",
            expected_errors=["ResourceNotFoundException"],
            name=cluster_name,
        )
