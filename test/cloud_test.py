from typing import Any, Dict, Tuple

import pytest
from botocore.exceptions import ClientError

from nodekeeper.cloud import AwsNodeGroupCloud
from nodekeeper.launch import AwsLaunchTemplateProvider
from nodekeeper.model import LaunchReference
from test import BotoDictSession, client_error, dict_client

groups = {
    "AutoScalingGroups": [
        {
            "AutoScalingGroupName": "prod-default-nodes",
            "AutoScalingGroupARN": "arn:aws:autoscaling:us-west-2:123456789012:autoScalingGroup:1:prod",
            "MinSize": 1,
            "MaxSize": 5,
            "DesiredCapacity": 2,
            "LaunchTemplate": {"LaunchTemplateName": "prod-default-nodes", "Version": "3"},
            "Tags": [
                {"Key": "instancemgr.keikoproj.io/cluster-name", "Value": "prod"},
                {"Key": "team", "Value": "infra"},
            ],
            "Instances": [
                {
                    "InstanceId": "i-1",
                    "LifecycleState": "InService",
                    "AvailabilityZone": "us-west-2a",
                    "LaunchTemplate": {"LaunchTemplateName": "prod-default-nodes", "Version": "3"},
                },
                {"InstanceId": "i-2", "LifecycleState": "Pending", "AvailabilityZone": "us-west-2b"},
            ],
        },
        {"AutoScalingGroupName": "empty"},
    ]
}


def cloud_for(responses: Dict[Tuple[str, str], Any]) -> Tuple[AwsNodeGroupCloud, BotoDictSession]:
    client, session = dict_client(responses)
    return AwsNodeGroupCloud(client, AwsLaunchTemplateProvider(client)), session


def test_list_scaling_groups() -> None:
    cloud, _ = cloud_for({("autoscaling", "describe-auto-scaling-groups"): groups})
    prod, empty = cloud.list_scaling_groups()
    assert prod.name == "prod-default-nodes"
    assert prod.tags == {"instancemgr.keikoproj.io/cluster-name": "prod", "team": "infra"}
    assert (prod.min_size, prod.max_size, prod.desired_capacity) == (1, 5, 2)
    assert prod.launch_reference == LaunchReference("prod-default-nodes", "3")
    assert [i.instance_id for i in prod.instances] == ["i-1", "i-2"]
    assert prod.instances[0].launch_reference == LaunchReference("prod-default-nodes", "3")
    assert prod.instances[1].launch_reference is None
    assert empty.tags == {}
    assert empty.instances == []
    assert empty.launch_reference is None


def test_resolve_role_and_profile() -> None:
    cloud, session = cloud_for(
        {
            ("iam", "get-role"): {"Role": {"RoleName": "nodes", "Arn": "arn:aws:iam::123456789012:role/nodes"}},
            ("iam", "get-instance-profile"): {
                "InstanceProfile": {
                    "InstanceProfileName": "nodes",
                    "Arn": "arn:aws:iam::123456789012:instance-profile/nodes",
                    "Roles": [{"RoleName": "nodes"}],
                }
            },
        }
    )
    role = cloud.resolve_role("nodes")
    assert role is not None
    assert role.arn == "arn:aws:iam::123456789012:role/nodes"
    profile = cloud.resolve_instance_profile("nodes")
    assert profile is not None
    assert profile.role_names == ["nodes"]
    assert session.calls[0] == ("iam", "get-role", {"RoleName": "nodes"})


def test_missing_role() -> None:
    cloud, _ = cloud_for(
        {
            ("iam", "get-role"): client_error("NoSuchEntity", "The role with name nodes cannot be found."),
            ("iam", "get-instance-profile"): client_error("NoSuchEntity"),
        }
    )
    assert cloud.resolve_role("nodes") is None
    assert cloud.resolve_instance_profile("nodes") is None


def test_resolve_role_fails() -> None:
    cloud, _ = cloud_for({("iam", "get-role"): client_error("AccessDenied")})
    with pytest.raises(ClientError):
        cloud.resolve_role("nodes")


def test_resolve_vpc() -> None:
    cloud, _ = cloud_for({("eks", "describe-cluster"): {"cluster": {"resourcesVpcConfig": {"vpcId": "vpc-0815"}}}})
    assert cloud.resolve_vpc("prod") == "vpc-0815"
    unknown, _ = cloud_for({("eks", "describe-cluster"): client_error("ResourceNotFoundException")})
    assert unknown.resolve_vpc("prod") is None
