import base64
import binascii
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from botocore.exceptions import ClientError

from nodekeeper.aws_client import AwsClient, error_code, error_message
from nodekeeper.exceptions import ConfigurationError, ProviderMutationError
from nodekeeper.launch.provider import (
    LaunchResourceProvider,
    block_device_mappings,
    strip_none,
    volumes_from,
)
from nodekeeper.model import (
    DesiredComputeSpec,
    LaunchData,
    LaunchReference,
    LaunchResource,
    LaunchVersion,
    PlacementSpec,
)
from nodekeeper.types import Json
from nodekeeper.utils import maybe_utc, time_suffix

log = logging.getLogger("nodekeeper.launch")

service_name = "autoscaling"


def split_name(name: str) -> Tuple[str, int]:
    """
    Launch configurations are immutable: every version is a configuration of its own,
    named <prefix>-<yyyymmddhhmmss>. The prefix names the family, the suffix is the version.
    Names without a numeric suffix form a family with a single version 0.
    """
    prefix, _, suffix = name.rpartition("-")
    if prefix and suffix.isdigit():
        return prefix, int(suffix)
    return name, 0


def configuration_reference(name: Optional[str]) -> Optional[LaunchReference]:
    if not name:
        return None
    prefix, number = split_name(name)
    return LaunchReference(prefix, str(number))


def configuration_payload(name: str, spec: DesiredComputeSpec) -> Json:
    if spec.license_specifications:
        raise ConfigurationError("launch configurations do not support license specifications")
    placement = spec.placement or PlacementSpec()
    if placement.availability_zone or placement.host_resource_group_arn:
        raise ConfigurationError("launch configurations only support a placement tenancy")
    return strip_none(
        {
            "LaunchConfigurationName": name,
            "IamInstanceProfile": spec.iam_instance_profile_arn or None,
            "ImageId": spec.image_id,
            "InstanceType": spec.instance_type,
            "KeyName": spec.key_name or None,
            "SecurityGroups": list(spec.security_groups),
            "UserData": spec.user_data or None,
            "BlockDeviceMappings": block_device_mappings(spec.volumes) or None,
            "PlacementTenancy": placement.tenancy or None,
        }
    )


def decoded_user_data(value: Optional[str]) -> Optional[str]:
    # botocore base64 encodes UserData of CreateLaunchConfiguration, describe returns it encoded
    if not value:
        return value
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        log.warning("User data of launch configuration is not base64 encoded: compare it as is")
        return value


def launch_version_from(js: Json) -> LaunchVersion:
    _, number = split_name(js["LaunchConfigurationName"])
    tenancy = js.get("PlacementTenancy")
    return LaunchVersion(
        version_number=number,
        created=maybe_utc(js.get("CreatedTime")),
        name=js["LaunchConfigurationName"],
        data=LaunchData(
            image_id=js.get("ImageId"),
            instance_type=js.get("InstanceType"),
            key_name=js.get("KeyName"),
            iam_instance_profile_arn=js.get("IamInstanceProfile"),
            security_groups=js.get("SecurityGroups") or [],
            user_data=decoded_user_data(js.get("UserData")),
            volumes=volumes_from(js.get("BlockDeviceMappings")),
            placement=PlacementSpec(tenancy=tenancy) if tenancy else None,
        ),
    )


def is_not_found(e: ClientError) -> bool:
    return error_code(e) == "ValidationError" and "not found" in error_message(e).lower()


class AwsLaunchConfigurationProvider(LaunchResourceProvider):
    """
    Autoscaling launch configurations, presented as versioned launch resources.
    A family of configurations sharing a name prefix is one launch resource.
    """

    kind = "launch_configuration"

    def __init__(self, client: AwsClient) -> None:
        self.client = client

    def __families(self) -> Dict[str, List[LaunchVersion]]:
        families: Dict[str, List[LaunchVersion]] = defaultdict(list)
        for js in self.client.list(service_name, "describe-launch-configurations", "LaunchConfigurations"):
            prefix, _ = split_name(js["LaunchConfigurationName"])
            families[prefix].append(launch_version_from(js))
        return families

    def list_launch_resources(self) -> List[LaunchResource]:
        result = []
        for prefix, versions in self.__families().items():
            latest = max(versions, key=lambda v: v.version_number)
            result.append(
                LaunchResource(
                    name=prefix,
                    latest_version_number=latest.version_number,
                    default_version_number=latest.version_number,
                    created=min((v.created for v in versions if v.created), default=None),
                )
            )
        return result

    def list_launch_versions(self, name: str) -> List[LaunchVersion]:
        return self.__families().get(name, [])

    def __create(self, name: str, spec: DesiredComputeSpec) -> int:
        suffix = time_suffix()
        config_name = f"{name}-{suffix}"
        log.info(f"Create launch configuration {config_name}")
        self.client.call(service_name, "create-launch-configuration", **configuration_payload(config_name, spec))
        return int(suffix)

    def create_launch_resource(self, name: str, spec: DesiredComputeSpec) -> None:
        self.__create(name, spec)

    def create_launch_version(self, name: str, spec: DesiredComputeSpec) -> int:
        return self.__create(name, spec)

    def promote_default_version(self, name: str, version_number: int) -> LaunchResource:
        # the scaling group switches to the new configuration when it is updated: nothing to promote here
        return LaunchResource(name=name, latest_version_number=version_number, default_version_number=version_number)

    def __delete(self, config_name: str) -> None:
        try:
            self.client.call(service_name, "delete-launch-configuration", LaunchConfigurationName=config_name)
        except ClientError as e:
            if not is_not_found(e):
                raise
            log.debug(f"Launch configuration {config_name} does not exist.")

    def delete_launch_resource(self, name: str) -> None:
        for version in self.list_launch_versions(name):
            log.info(f"Delete launch configuration {version.name}")
            self.__delete(version.name or name)

    def delete_launch_versions(self, name: str, version_numbers: List[int]) -> None:
        by_number = {v.version_number: v for v in self.list_launch_versions(name)}
        unknown = [n for n in version_numbers if n not in by_number]
        if unknown:
            raise ProviderMutationError("delete launch configuration versions", f"{name} (unknown versions: {unknown})")
        for number in version_numbers:
            version = by_number[number]
            log.info(f"Delete launch configuration {version.name}")
            self.client.call(service_name, "delete-launch-configuration", LaunchConfigurationName=version.name)

    def reference_of(self, group: Json) -> Optional[LaunchReference]:
        return configuration_reference(group.get("LaunchConfigurationName"))

    def instance_reference(self, instance: Json) -> Optional[LaunchReference]:
        return configuration_reference(instance.get("LaunchConfigurationName"))
