import logging
from typing import Any, Iterable, List, Optional

from attrs import define, field, frozen

from nodekeeper.model import DesiredComputeSpec, LaunchData, LaunchVersion, PlacementSpec, VolumeSpec

log = logging.getLogger("nodekeeper.drift")


@frozen
class DriftReason:
    field: str
    previous: Any
    desired: Any

    def __str__(self) -> str:
        return f"{self.field} has changed"


@define
class DriftReport:
    reasons: List[DriftReason] = field(factory=list)
    missing: bool = False

    @property
    def drifted(self) -> bool:
        return self.missing or len(self.reasons) > 0

    def messages(self) -> List[str]:
        if self.missing:
            return ["launch resource does not exist"]
        return [str(r) for r in self.reasons]


def sort_volumes(volumes: Optional[Iterable[VolumeSpec]]) -> List[VolumeSpec]:
    return sorted(volumes or [], key=lambda v: v.name)


def normalize_placement(placement: Optional[PlacementSpec]) -> PlacementSpec:
    return (placement or PlacementSpec()).normalized()


def same_string(existing: Optional[str], desired: Optional[str]) -> bool:
    return (existing or "") == (desired or "")


def same_set(existing: Iterable[str], desired: Iterable[str]) -> bool:
    return set(existing) == set(desired)


def same_volumes(existing: Iterable[VolumeSpec], desired: Iterable[VolumeSpec]) -> bool:
    return sort_volumes(existing) == sort_volumes(desired)


def same_licenses(existing: List[str], desired: List[str]) -> bool:
    if len(existing) != len(desired):
        return False
    return all(arn in existing for arn in desired)


def same_placement(existing: Optional[PlacementSpec], desired: Optional[PlacementSpec]) -> bool:
    return normalize_placement(existing) == normalize_placement(desired)


def detect_drift(latest: Optional[LaunchVersion], desired: DesiredComputeSpec) -> DriftReport:
    """
    Compare the latest realized launch version against the desired spec.
    Every field is checked, so the report lists every difference, not only the first one.
    """
    if latest is None:
        return DriftReport(missing=True)

    data: LaunchData = latest.data
    report = DriftReport()

    def check(name: str, equal: bool, previous: Any, wanted: Any) -> None:
        if not equal:
            report.reasons.append(DriftReason(name, previous, wanted))

    check("image-id", same_string(data.image_id, desired.image_id), data.image_id, desired.image_id)
    check(
        "instance-type",
        same_string(data.instance_type, desired.instance_type),
        data.instance_type,
        desired.instance_type,
    )
    check(
        "instance-profile",
        same_string(data.iam_instance_profile_arn, desired.iam_instance_profile_arn),
        data.iam_instance_profile_arn,
        desired.iam_instance_profile_arn,
    )
    check(
        "security-groups",
        same_set(data.security_groups, desired.security_groups),
        data.security_groups,
        desired.security_groups,
    )
    check("key-pair", same_string(data.key_name, desired.key_name), data.key_name, desired.key_name)
    check("user-data", same_string(data.user_data, desired.user_data), data.user_data, desired.user_data)
    check(
        "volumes",
        same_volumes(data.volumes, desired.volumes),
        sort_volumes(data.volumes),
        sort_volumes(desired.volumes),
    )
    check(
        "license-specifications",
        same_licenses(data.license_specifications, desired.license_specifications),
        data.license_specifications,
        desired.license_specifications,
    )
    check(
        "placement",
        same_placement(data.placement, desired.placement),
        normalize_placement(data.placement),
        normalize_placement(desired.placement),
    )
    return report
