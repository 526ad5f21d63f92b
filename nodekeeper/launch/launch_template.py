import logging
from typing import List, Optional

from nodekeeper.aws_client import AwsClient
from nodekeeper.exceptions import ProviderMutationError
from nodekeeper.launch.provider import (
    LaunchResourceProvider,
    block_device_mappings,
    placement_from,
    strip_none,
    volumes_from,
)
from nodekeeper.model import DesiredComputeSpec, LaunchData, LaunchReference, LaunchResource, LaunchVersion
from nodekeeper.types import Json
from nodekeeper.utils import maybe_utc

log = logging.getLogger("nodekeeper.launch")

service_name = "ec2"
NotFoundErrors = ["InvalidLaunchTemplateName.NotFoundException", "InvalidLaunchTemplateId.NotFound"]


def template_data(spec: DesiredComputeSpec) -> Json:
    data = strip_none(
        {
            "IamInstanceProfile": {"Arn": spec.iam_instance_profile_arn} if spec.iam_instance_profile_arn else None,
            "ImageId": spec.image_id,
            "InstanceType": spec.instance_type,
            "KeyName": spec.key_name or None,
            "SecurityGroupIds": list(spec.security_groups),
            "UserData": spec.user_data or None,
            "BlockDeviceMappings": block_device_mappings(spec.volumes) or None,
            "LicenseSpecifications": [{"LicenseConfigurationArn": arn} for arn in spec.license_specifications]
            or None,
        }
    )
    if spec.placement is not None and not spec.placement.is_empty():
        data["Placement"] = strip_none(
            {
                "AvailabilityZone": spec.placement.availability_zone or None,
                "HostResourceGroupArn": spec.placement.host_resource_group_arn or None,
                "Tenancy": spec.placement.tenancy or None,
            }
        )
    return data


def launch_data_from(js: Json) -> LaunchData:
    return LaunchData(
        image_id=js.get("ImageId"),
        instance_type=js.get("InstanceType"),
        key_name=js.get("KeyName"),
        iam_instance_profile_arn=(js.get("IamInstanceProfile") or {}).get("Arn"),
        security_groups=js.get("SecurityGroupIds") or [],
        user_data=js.get("UserData"),
        volumes=volumes_from(js.get("BlockDeviceMappings")),
        license_specifications=[
            ls["LicenseConfigurationArn"]
            for ls in js.get("LicenseSpecifications") or []
            if ls.get("LicenseConfigurationArn")
        ],
        placement=placement_from(js.get("Placement")),
    )


def launch_resource_from(js: Json) -> LaunchResource:
    return LaunchResource(
        name=js["LaunchTemplateName"],
        id=js.get("LaunchTemplateId"),
        latest_version_number=js.get("LatestVersionNumber"),
        default_version_number=js.get("DefaultVersionNumber"),
        created=maybe_utc(js.get("CreateTime")),
    )


def launch_version_from(js: Json) -> LaunchVersion:
    return LaunchVersion(
        version_number=js["VersionNumber"],
        created=maybe_utc(js.get("CreateTime")),
        data=launch_data_from(js.get("LaunchTemplateData") or {}),
    )


def template_reference(js: Optional[Json]) -> Optional[LaunchReference]:
    if not js or not js.get("LaunchTemplateName"):
        return None
    return LaunchReference(js["LaunchTemplateName"], js.get("Version"))


class AwsLaunchTemplateProvider(LaunchResourceProvider):
    """Versioned EC2 launch templates: every change creates a new template version."""

    kind = "launch_template"

    def __init__(self, client: AwsClient) -> None:
        self.client = client

    def list_launch_resources(self) -> List[LaunchResource]:
        return [
            launch_resource_from(js)
            for js in self.client.list(service_name, "describe-launch-templates", "LaunchTemplates")
        ]

    def list_launch_versions(self, name: str) -> List[LaunchVersion]:
        return [
            launch_version_from(js)
            for js in self.client.list(
                service_name,
                "describe-launch-template-versions",
                "LaunchTemplateVersions",
                LaunchTemplateName=name,
            )
        ]

    def create_launch_resource(self, name: str, spec: DesiredComputeSpec) -> None:
        log.info(f"Create launch template {name}")
        self.client.call(
            service_name,
            "create-launch-template",
            LaunchTemplateName=name,
            LaunchTemplateData=template_data(spec),
        )

    def create_launch_version(self, name: str, spec: DesiredComputeSpec) -> int:
        log.info(f"Create new version of launch template {name}")
        created = self.client.call(
            service_name,
            "create-launch-template-version",
            "LaunchTemplateVersion",
            LaunchTemplateName=name,
            LaunchTemplateData=template_data(spec),
        )
        return int(created["VersionNumber"])  # type: ignore

    def promote_default_version(self, name: str, version_number: int) -> LaunchResource:
        modified = self.client.call(
            service_name,
            "modify-launch-template",
            "LaunchTemplate",
            LaunchTemplateName=name,
            DefaultVersion=str(version_number),
        )
        return launch_resource_from(modified)  # type: ignore

    def delete_launch_resource(self, name: str) -> None:
        log.info(f"Delete launch template {name}")
        self.client.call(
            service_name, "delete-launch-template", expected_errors=NotFoundErrors, LaunchTemplateName=name
        )

    def delete_launch_versions(self, name: str, version_numbers: List[int]) -> None:
        result = self.client.call(
            service_name,
            "delete-launch-template-versions",
            LaunchTemplateName=name,
            Versions=[str(v) for v in version_numbers],
        )
        failed = (result or {}).get("UnsuccessfullyDeletedLaunchTemplateVersions") or []  # type: ignore
        if failed:
            details = ", ".join(
                f"{f.get('VersionNumber')}: {(f.get('ResponseError') or {}).get('Code')}" for f in failed
            )
            raise ProviderMutationError("delete launch template versions", f"{name} ({details})")

    def reference_of(self, group: Json) -> Optional[LaunchReference]:
        mixed = (group.get("MixedInstancesPolicy") or {}).get("LaunchTemplate") or {}
        return template_reference(mixed.get("LaunchTemplateSpecification")) or template_reference(
            group.get("LaunchTemplate")
        )

    def instance_reference(self, instance: Json) -> Optional[LaunchReference]:
        return template_reference(instance.get("LaunchTemplate"))
