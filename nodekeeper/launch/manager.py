import logging
from typing import List, Optional

from nodekeeper.configuration import DefaultRetainVersions
from nodekeeper.drift import DriftReport, detect_drift
from nodekeeper.exceptions import DiscoveryError, NodeKeeperError, ProviderMutationError
from nodekeeper.launch.provider import LaunchResourceProvider
from nodekeeper.model import DesiredComputeSpec, LaunchResource, LaunchVersion, ScalingGroupSnapshot
from nodekeeper.versions import deletable_versions, find_version

log = logging.getLogger("nodekeeper.launch")


class LaunchResourceManager:
    """
    Discovers, creates and garbage collects the launch resource of a single node group,
    and decides whether the resource drifted from the desired spec or instances need rotation.
    One manager is created per reconcile pass and is not shared between passes.
    """

    def __init__(
        self,
        provider: LaunchResourceProvider,
        owner_name: str,
        resource_name: str,
        retain_versions: int = DefaultRetainVersions,
    ) -> None:
        self.provider = provider
        self.owner_name = owner_name
        self.resource_name = resource_name
        self.retain_versions = retain_versions if retain_versions > 0 else DefaultRetainVersions
        self.target_resource: Optional[LaunchResource] = None
        self.target_versions: List[LaunchVersion] = []
        self.latest_version: Optional[LaunchVersion] = None
        self.resource_list: List[LaunchResource] = []
        self.drift_report: Optional[DriftReport] = None

    @property
    def provisioned(self) -> bool:
        return self.target_resource is not None

    @property
    def name(self) -> str:
        return self.target_resource.name if self.target_resource is not None else ""

    def __log_prefix(self) -> str:
        return f"[NodeGroup:{self.owner_name}]"

    def __list_resources(self) -> List[LaunchResource]:
        try:
            return self.provider.list_launch_resources()
        except NodeKeeperError:
            raise
        except Exception as e:
            raise DiscoveryError(f"failed to describe {self.provider.kind} resources: {e}") from e

    def __load_versions(self, resource: LaunchResource) -> None:
        self.target_resource = resource
        try:
            self.target_versions = self.provider.list_launch_versions(resource.name)
        except Exception as e:
            # the resource exists even if its versions can not be listed
            log.warning(f"{self.__log_prefix()} failed to describe versions of {resource.name}: {e}")
            self.target_versions = []
        self.latest_version = find_version(self.target_versions, resource.latest_version_number)

    def discover(self, scaling_group: Optional[ScalingGroupSnapshot]) -> None:
        self.target_resource = None
        self.target_versions = []
        self.latest_version = None
        self.resource_list = self.__list_resources()
        if scaling_group is None:
            return

        reference = scaling_group.launch_reference
        target_name = reference.name if reference is not None else ""
        for resource in self.resource_list:
            if resource.name.lower() == target_name.lower():
                self.__load_versions(resource)
        if self.provisioned:
            log.debug(f"{self.__log_prefix()} discovered {self.provider.kind} {self.name}")

    def adopt(self, name: str) -> bool:
        """
        Load a listed launch resource by name, without a scaling group referring to it.
        Used for node groups whose scaling group does not exist yet.
        """
        for resource in self.resource_list:
            if resource.name.lower() == name.lower():
                self.__load_versions(resource)
                return True
        return False

    def create(self, desired: DesiredComputeSpec) -> None:
        """
        Launch resources are immutable: a change always creates a new version,
        which becomes the default version of the resource.
        """
        if not self.provisioned:
            name = self.resource_name
            try:
                self.provider.create_launch_resource(name, desired)
            except NodeKeeperError:
                raise
            except Exception as e:
                raise ProviderMutationError(f"create {self.provider.kind}", name, e) from e
            self.resource_list = self.__list_resources()
            created = next((r for r in self.resource_list if r.name.lower() == name.lower()), None)
            if created is not None:
                self.__load_versions(created)
            return

        name = self.name
        try:
            version = self.provider.create_launch_version(name, desired)
        except NodeKeeperError:
            raise
        except Exception as e:
            raise ProviderMutationError(f"create {self.provider.kind} version", name, e) from e
        try:
            modified = self.provider.promote_default_version(name, version)
        except NodeKeeperError:
            raise
        except Exception as e:
            # the new version stays around and is garbage collected by a later pass
            raise ProviderMutationError(f"set default version {version} of {self.provider.kind}", name, e) from e
        log.info(f"{self.__log_prefix()} created version {version} of {self.provider.kind} {name}")
        self.__load_versions(modified)

    def delete(self, delete_all: bool = False, retain_versions: Optional[int] = None) -> List[int]:
        """
        Delete the whole launch resource, or all versions except the most recent ones.
        Returns the version numbers that have been deleted.
        """
        if not self.provisioned:
            return []
        name = self.name
        if delete_all:
            try:
                self.provider.delete_launch_resource(name)
            except NodeKeeperError:
                raise
            except Exception as e:
                raise ProviderMutationError(f"delete {self.provider.kind}", name, e) from e
            deleted = [v.version_number for v in self.target_versions]
            self.target_resource = None
            self.target_versions = []
            self.latest_version = None
            return deleted

        retain = retain_versions if retain_versions else self.retain_versions
        deletable = [v.version_number for v in deletable_versions(self.target_versions, retain)]
        if not deletable:
            return []

        log.info(f"{self.__log_prefix()} deleting {self.provider.kind} versions of {name}: {deletable}")
        try:
            self.provider.delete_launch_versions(name, deletable)
        except NodeKeeperError:
            raise
        except Exception as e:
            raise ProviderMutationError(f"delete {self.provider.kind} versions", name, e) from e
        self.target_versions = [v for v in self.target_versions if v.version_number not in deletable]
        return deletable

    def drift(self, desired: DesiredComputeSpec) -> DriftReport:
        report = detect_drift(self.latest_version, desired)
        if report.missing:
            log.info(f"{self.__log_prefix()} detected drift: {self.provider.kind} does not exist")
        for reason in report.reasons:
            log.info(
                f"{self.__log_prefix()} detected drift: {reason.field} has changed. "
                f"previous={reason.previous} desired={reason.desired}"
            )
        if not report.drifted:
            log.info(f"{self.__log_prefix()} drift not detected")
        self.drift_report = report
        return report

    def drifted(self, desired: DesiredComputeSpec) -> bool:
        return self.drift(desired).drifted

    def rotation_needed(self, scaling_group: ScalingGroupSnapshot) -> bool:
        """
        True if any instance has not been created from the latest version of the launch resource.
        """
        if len(scaling_group.instances) == 0:
            return False

        if self.latest_version is None:
            return True

        latest = str(self.latest_version.version_number)
        name = self.name
        for instance in scaling_group.instances:
            reference = instance.launch_reference
            if reference is None:
                return True
            if reference.name != name:
                return True
            if reference.version != latest:
                return True
        return False
