from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from nodekeeper.model import (
    DesiredComputeSpec,
    LaunchReference,
    LaunchResource,
    LaunchVersion,
    PlacementSpec,
    VolumeSpec,
)
from nodekeeper.types import Json


class LaunchResourceProvider(ABC):
    """
    Cloud capabilities needed to manage versioned launch resources.
    Errors of the underlying cloud api are raised unchanged, with one exception:
    delete_launch_resource ignores a resource that does not exist.
    """

    kind: str = "launch_resource"

    @abstractmethod
    def list_launch_resources(self) -> List[LaunchResource]:
        pass

    @abstractmethod
    def list_launch_versions(self, name: str) -> List[LaunchVersion]:
        pass

    @abstractmethod
    def create_launch_resource(self, name: str, spec: DesiredComputeSpec) -> None:
        pass

    @abstractmethod
    def create_launch_version(self, name: str, spec: DesiredComputeSpec) -> int:
        pass

    @abstractmethod
    def promote_default_version(self, name: str, version_number: int) -> LaunchResource:
        pass

    @abstractmethod
    def delete_launch_resource(self, name: str) -> None:
        pass

    @abstractmethod
    def delete_launch_versions(self, name: str, version_numbers: List[int]) -> None:
        pass

    @abstractmethod
    def reference_of(self, group: Json) -> Optional[LaunchReference]:
        """The launch resource a scaling group (as returned by describe-auto-scaling-groups) refers to."""

    @abstractmethod
    def instance_reference(self, instance: Json) -> Optional[LaunchReference]:
        """The launch resource a scaling group instance was created with."""


def strip_none(js: Dict[str, Any]) -> Dict[str, Any]:
    # boto rejects explicit null parameters
    return {k: v for k, v in js.items() if v is not None}


def block_device_mappings(volumes: List[VolumeSpec]) -> List[Json]:
    return [
        {
            "DeviceName": v.name,
            "Ebs": strip_none(
                {
                    "VolumeType": v.type,
                    "VolumeSize": v.size,
                    "Iops": v.iops,
                    "SnapshotId": v.snapshot_id,
                    "DeleteOnTermination": v.delete_on_termination,
                    "Encrypted": v.encrypted,
                }
            ),
        }
        for v in volumes
    ]


def volumes_from(mappings: Optional[List[Json]]) -> List[VolumeSpec]:
    result: List[VolumeSpec] = []
    for mapping in mappings or []:
        ebs = mapping.get("Ebs") or {}
        result.append(
            VolumeSpec(
                name=mapping.get("DeviceName", ""),
                type=ebs.get("VolumeType"),
                size=ebs.get("VolumeSize"),
                iops=ebs.get("Iops"),
                snapshot_id=ebs.get("SnapshotId"),
                delete_on_termination=ebs.get("DeleteOnTermination"),
                encrypted=ebs.get("Encrypted"),
            )
        )
    return result


def placement_from(js: Optional[Json]) -> Optional[PlacementSpec]:
    if not js:
        return None
    return PlacementSpec(
        availability_zone=js.get("AvailabilityZone"),
        host_resource_group_arn=js.get("HostResourceGroupArn"),
        tenancy=js.get("Tenancy"),
    )