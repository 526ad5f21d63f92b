from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from boto3 import Session
from botocore.exceptions import ClientError

from nodekeeper.aws_client import AwsClient
from nodekeeper.cloud import NodeGroupCloud
from nodekeeper.configuration import LaunchTemplateMode, NodeKeeperConfig
from nodekeeper.launch.provider import LaunchResourceProvider
from nodekeeper.model import (
    DesiredComputeSpec,
    InstanceProfile,
    InstanceRecord,
    LaunchData,
    LaunchReference,
    LaunchResource,
    LaunchVersion,
    Role,
    ScalingGroupSnapshot,
    SpotRecommendationEvent,
    VolumeSpec,
)
from nodekeeper.recommendations import RecommendationSource
from nodekeeper.types import Json

# a fixed point in time: all test timestamps are relative to it
T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def minutes(n: int) -> datetime:
    return T0 + timedelta(minutes=n)


def client_error(code: str, message: str = "Err!", operation: str = "foo") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class BotoDummyStsClient:
    def __getattr__(self, action_name: str) -> Callable[[], Any]:
        def call(*args: Any, **kwargs: Any) -> Any:
            return {"Credentials": {"AccessKeyId": "xxx", "SecretAccessKey": "xxx", "SessionToken": "xxx"}}

        return call


class BotoDictClient:
    """
    Answers every action with a canned response, keyed by (service, action).
    A response can be a json object, an exception to raise or a function of the call arguments.
    All calls are recorded in the order they are made.
    """

    def __init__(self, service: str, responses: Dict[Tuple[str, str], Any], calls: List[Tuple[str, str, Json]]):
        self.service = service
        self.responses = responses
        self.calls = calls

    @staticmethod
    def can_paginate(_: str) -> bool:
        return False

    def close(self) -> None:
        pass

    def __getattr__(self, action_name: str) -> Callable[..., Any]:
        def call_action(*args: Any, **kwargs: Any) -> Any:
            assert not args, "No arguments allowed!"
            action = action_name.replace("_", "-")
            self.calls.append((self.service, action, kwargs))
            response = self.responses.get((self.service, action), {})
            if callable(response):
                response = response(**kwargs)
            if isinstance(response, Exception):
                raise response
            return response

        return call_action


# use this factory in tests, to answer API calls from a dictionary
class BotoDictSession(Session):  # type: ignore
    def __init__(self, responses: Optional[Dict[Tuple[str, str], Any]] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.responses = responses or {}
        self.calls: List[Tuple[str, str, Json]] = []

    def client(self, service_name: str, **kwargs: Any) -> Any:
        if service_name == "sts":
            return BotoDummyStsClient()
        return BotoDictClient(service_name, self.responses, self.calls)

    def actions(self) -> List[str]:
        return [f"{service}:{action}" for service, action, _ in self.calls]

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self


class BotoErrorClient:
    def __init__(self, exception: Exception):
        self.exception = exception

    def close(self) -> None:
        pass

    def __getattr__(self, action_name: str) -> Callable[[], Any]:
        raise self.exception


# use this factory in tests, to check how the client behaves in terms of errors
class BotoErrorSession(Session):  # type: ignore
    def __init__(self, exception: Exception = Exception("Test exception"), **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.exception = exception

    def client(self, service_name: str, **kwargs: Any) -> Any:
        return BotoErrorClient(self.exception)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self


def nodekeeper_config(**kwargs: Any) -> NodeKeeperConfig:
    args: Dict[str, Any] = dict(access_key_id="foo", secret_access_key="bar", region="us-west-2")
    args.update(kwargs)
    return NodeKeeperConfig(**args)


def dict_client(
    responses: Optional[Dict[Tuple[str, str], Any]] = None, provisioning_mode: str = LaunchTemplateMode
) -> Tuple[AwsClient, BotoDictSession]:
    config = nodekeeper_config(provisioning_mode=provisioning_mode)
    session = BotoDictSession(responses)
    config.sessions().session_class_factory = session  # type: ignore
    return AwsClient(config), session


def error_client(exception: Exception) -> AwsClient:
    config = nodekeeper_config()
    config.sessions().session_class_factory = BotoErrorSession(exception)  # type: ignore
    return AwsClient(config)


def desired_spec(**kwargs: Any) -> DesiredComputeSpec:
    args: Dict[str, Any] = dict(
        image_id="ami-123456789012",
        instance_type="m5.large",
        key_name="nodes-key",
        iam_instance_profile_arn="arn:aws:iam::123456789012:instance-profile/nodes",
        security_groups=["sg-1", "sg-2"],
        user_data="IyEvYmluL2Jhc2g=",
        volumes=[VolumeSpec("/dev/xvda", type="gp3", size=40, delete_on_termination=True, encrypted=True)],
    )
    args.update(kwargs)
    return DesiredComputeSpec(**args)


def launch_data_of(spec: DesiredComputeSpec) -> LaunchData:
    return LaunchData(
        image_id=spec.image_id,
        instance_type=spec.instance_type,
        key_name=spec.key_name,
        iam_instance_profile_arn=spec.iam_instance_profile_arn,
        security_groups=list(spec.security_groups),
        user_data=spec.user_data,
        volumes=list(spec.volumes),
        license_specifications=list(spec.license_specifications),
        placement=spec.placement,
    )


def version(
    number: int, created: Optional[datetime] = None, spec: Optional[DesiredComputeSpec] = None
) -> LaunchVersion:
    return LaunchVersion(number, created, launch_data_of(spec or desired_spec()))


def instance(instance_id: str, name: Optional[str], version_number: Optional[str] = None) -> InstanceRecord:
    reference = LaunchReference(name, version_number) if name is not None else None
    return InstanceRecord(instance_id, reference, "InService", "us-west-2a")


def scaling_group(
    name: str,
    instances: Optional[List[InstanceRecord]] = None,
    launch_name: Optional[str] = None,
    tags: Optional[Dict[str, str]] = None,
) -> ScalingGroupSnapshot:
    return ScalingGroupSnapshot(
        name=name,
        arn=f"arn:aws:autoscaling:us-west-2:123456789012:autoScalingGroup:1234:autoScalingGroupName/{name}",
        tags=tags or {},
        min_size=1,
        max_size=3,
        desired_capacity=len(instances or []),
        instances=instances or [],
        launch_reference=LaunchReference(launch_name) if launch_name else None,
    )


class FakeLaunchProvider(LaunchResourceProvider):
    """
    Launch resources held in memory.
    Errors can be injected per operation name, e.g. {"promote_default_version": Exception("boom")}.
    """

    kind = "launch_template"

    def __init__(
        self,
        versions: Optional[Dict[str, List[LaunchVersion]]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ) -> None:
        self.versions: Dict[str, List[LaunchVersion]] = {k: list(v) for k, v in (versions or {}).items()}
        self.defaults: Dict[str, int] = {
            k: max(v.version_number for v in vs) for k, vs in self.versions.items() if vs
        }
        self.errors = errors or {}
        self.calls: List[Tuple[str, Any]] = []
        self.clock = minutes(1000)

    def __record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self.errors:
            raise self.errors[operation]

    def __next_time(self) -> datetime:
        self.clock = self.clock + timedelta(minutes=1)
        return self.clock

    def operations(self) -> List[str]:
        return [operation for operation, _ in self.calls]

    def resource(self, name: str) -> LaunchResource:
        numbers = [v.version_number for v in self.versions[name]]
        return LaunchResource(
            name=name,
            id=f"lt-{name}",
            latest_version_number=max(numbers) if numbers else None,
            default_version_number=self.defaults.get(name),
        )

    def list_launch_resources(self) -> List[LaunchResource]:
        self.__record("list_launch_resources")
        return [self.resource(name) for name in self.versions]

    def list_launch_versions(self, name: str) -> List[LaunchVersion]:
        self.__record("list_launch_versions", name)
        return list(self.versions.get(name, []))

    def create_launch_resource(self, name: str, spec: DesiredComputeSpec) -> None:
        self.__record("create_launch_resource", name)
        self.versions[name] = [LaunchVersion(1, self.__next_time(), launch_data_of(spec))]
        self.defaults[name] = 1

    def create_launch_version(self, name: str, spec: DesiredComputeSpec) -> int:
        self.__record("create_launch_version", name)
        number = max(v.version_number for v in self.versions[name]) + 1
        self.versions[name].append(LaunchVersion(number, self.__next_time(), launch_data_of(spec)))
        return number

    def promote_default_version(self, name: str, version_number: int) -> LaunchResource:
        self.__record("promote_default_version", name, version_number)
        self.defaults[name] = version_number
        return self.resource(name)

    def delete_launch_resource(self, name: str) -> None:
        self.__record("delete_launch_resource", name)
        self.versions.pop(name, None)
        self.defaults.pop(name, None)

    def delete_launch_versions(self, name: str, version_numbers: List[int]) -> None:
        self.__record("delete_launch_versions", name, list(version_numbers))
        self.versions[name] = [v for v in self.versions[name] if v.version_number not in version_numbers]

    def reference_of(self, group: Json) -> Optional[LaunchReference]:
        name = group.get("LaunchTemplateName")
        return LaunchReference(name, group.get("Version")) if name else None

    def instance_reference(self, instance: Json) -> Optional[LaunchReference]:
        return self.reference_of(instance)


class FakeNodeGroupCloud(NodeGroupCloud):
    def __init__(
        self,
        groups: Optional[List[ScalingGroupSnapshot]] = None,
        roles: Optional[List[Role]] = None,
        profiles: Optional[List[InstanceProfile]] = None,
        vpc_id: Optional[str] = "vpc-123",
        error: Optional[Exception] = None,
    ) -> None:
        self.groups = groups or []
        self.roles = {r.name: r for r in roles or []}
        self.profiles = {p.name: p for p in profiles or []}
        self.vpc_id = vpc_id
        self.error = error

    def list_scaling_groups(self) -> List[ScalingGroupSnapshot]:
        if self.error is not None:
            raise self.error
        return list(self.groups)

    def resolve_role(self, name: str) -> Optional[Role]:
        return self.roles.get(name)

    def resolve_instance_profile(self, name: str) -> Optional[InstanceProfile]:
        return self.profiles.get(name)

    def resolve_vpc(self, cluster_name: str) -> Optional[str]:
        return self.vpc_id


class FakeRecommendationSource(RecommendationSource):
    def __init__(self, events: Optional[List[SpotRecommendationEvent]] = None, error: Optional[Exception] = None):
        self.events = events or []
        self.error = error
        self.requested: List[str] = []

    def list_recommendation_events(self, group_name: str) -> List[SpotRecommendationEvent]:
        self.requested.append(group_name)
        if self.error is not None:
            raise self.error
        return [e for e in self.events if e.group_name == group_name]
