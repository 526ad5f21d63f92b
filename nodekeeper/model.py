from datetime import datetime
from typing import ClassVar, Dict, List, Optional

from attrs import define, field, frozen


@frozen
class VolumeSpec:
    """A block device of a launch resource, keyed by its device name."""

    name: str
    type: Optional[str] = None
    size: Optional[int] = None
    iops: Optional[int] = None
    snapshot_id: Optional[str] = None
    delete_on_termination: Optional[bool] = None
    encrypted: Optional[bool] = None


@frozen
class PlacementSpec:
    availability_zone: Optional[str] = None
    host_resource_group_arn: Optional[str] = None
    tenancy: Optional[str] = None

    def normalized(self) -> "PlacementSpec":
        return PlacementSpec(
            self.availability_zone or "",
            self.host_resource_group_arn or "",
            self.tenancy or "",
        )

    def is_empty(self) -> bool:
        return not (self.availability_zone or self.host_resource_group_arn or self.tenancy)


@frozen
class DesiredComputeSpec:
    """
    The declared launch configuration of a node group for one reconcile pass.
    user_data is compared byte for byte: callers have to render it deterministically.
    """

    image_id: str
    instance_type: str
    key_name: str = ""
    iam_instance_profile_arn: str = ""
    security_groups: List[str] = field(factory=list)
    user_data: str = ""
    volumes: List[VolumeSpec] = field(factory=list)
    license_specifications: List[str] = field(factory=list)
    placement: Optional[PlacementSpec] = None


@frozen
class LaunchData:
    """The configuration realized by one launch resource version."""

    image_id: Optional[str] = None
    instance_type: Optional[str] = None
    key_name: Optional[str] = None
    iam_instance_profile_arn: Optional[str] = None
    security_groups: List[str] = field(factory=list)
    user_data: Optional[str] = None
    volumes: List[VolumeSpec] = field(factory=list)
    license_specifications: List[str] = field(factory=list)
    placement: Optional[PlacementSpec] = None


@frozen
class LaunchVersion:
    version_number: int
    created: Optional[datetime] = None
    data: LaunchData = field(factory=LaunchData)
    # provider specific name of this version, if the provider names versions individually
    name: Optional[str] = None


@frozen
class LaunchResource:
    name: str
    id: Optional[str] = None
    latest_version_number: Optional[int] = None
    default_version_number: Optional[int] = None
    created: Optional[datetime] = None


@frozen
class LaunchReference:
    """The launch resource name and version a scaling group or an instance refers to."""

    name: str
    version: Optional[str] = None


@frozen
class InstanceRecord:
    instance_id: str
    launch_reference: Optional[LaunchReference] = None
    lifecycle_state: Optional[str] = None
    availability_zone: Optional[str] = None


@define
class ScalingGroupSnapshot:
    name: str
    arn: Optional[str] = None
    tags: Dict[str, str] = field(factory=dict)
    min_size: int = 0
    max_size: int = 0
    desired_capacity: int = 0
    instances: List[InstanceRecord] = field(factory=list)
    launch_reference: Optional[LaunchReference] = None

    def owned_by(self, expected_tags: Dict[str, str]) -> bool:
        return all(self.tags.get(key) == value for key, value in expected_tags.items())


@frozen
class Role:
    name: str
    arn: Optional[str] = None


@frozen
class InstanceProfile:
    name: str
    arn: Optional[str] = None
    role_names: List[str] = field(factory=list)


@frozen
class SpotRecommendationEvent:
    group_name: str
    price: str
    recommended: bool
    timestamp: Optional[datetime] = None


@frozen
class NodeGroup:
    """Identity and cloud related settings of a managed node group."""

    cluster_name: str
    name: str
    namespace: str
    role_name: Optional[str] = None
    instance_profile_name: Optional[str] = None
    spot_price: str = ""

    @property
    def resource_prefix(self) -> str:
        return f"{self.cluster_name}-{self.namespace}-{self.name}"

    @property
    def owner_name(self) -> str:
        return f"{self.namespace}/{self.name}"


@define
class DiscoveredState:
    """Result of cloud discovery for one reconcile pass. Rebuilt from scratch on every pass."""

    spot_lifecycle: ClassVar[str] = "spot"
    normal_lifecycle: ClassVar[str] = "normal"

    role: Optional[Role] = None
    instance_profile: Optional[InstanceProfile] = None
    owned_scaling_groups: List[ScalingGroupSnapshot] = field(factory=list)
    scaling_group: Optional[ScalingGroupSnapshot] = None
    launch_resource: Optional[LaunchResource] = None
    latest_version: Optional[LaunchVersion] = None
    vpc_id: Optional[str] = None
    spot_price: str = ""

    @property
    def provisioned(self) -> bool:
        return self.scaling_group is not None

    @property
    def lifecycle(self) -> str:
        return self.spot_lifecycle if self.spot_price else self.normal_lifecycle


@define
class NodeGroupStatus:
    active_launch_resource_name: str = ""
    active_scaling_group_name: str = ""
    current_min: int = 0
    current_max: int = 0
    lifecycle: str = DiscoveredState.normal_lifecycle
    spot_price: str = ""
    drifted: bool = False
    rotation_needed: bool = False
    drift_reasons: List[str] = field(factory=list)
    nodes_arn: str = ""
    vpc_id: str = ""
    latest_version: Optional[int] = None
    deleted_versions: List[int] = field(factory=list)
