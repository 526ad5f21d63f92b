import logging
from typing import Optional

from nodekeeper.discovery import CloudStateAggregator
from nodekeeper.launch.manager import LaunchResourceManager
from nodekeeper.launch.provider import LaunchResourceProvider
from nodekeeper.model import DesiredComputeSpec, DiscoveredState, NodeGroup, NodeGroupStatus
from nodekeeper.utils import log_runtime

log = logging.getLogger("nodekeeper.reconciler")


class ReconcilePass:
    """
    One reconcile pass for one node group:
    discovery, drift and rotation evaluation and - if requested - creation of a new
    launch version and garbage collection of old versions.
    Instances are never terminated here: rotation is only reported.
    """

    def __init__(
        self,
        aggregator: CloudStateAggregator,
        launch_provider: LaunchResourceProvider,
        retain_versions: int,
    ) -> None:
        self.aggregator = aggregator
        self.launch_provider = launch_provider
        self.retain_versions = retain_versions
        self.state: Optional[DiscoveredState] = None
        self.manager: Optional[LaunchResourceManager] = None

    @log_runtime
    def run(self, node_group: NodeGroup, desired: DesiredComputeSpec, apply: bool = False) -> NodeGroupStatus:
        state = self.aggregator.discover(node_group)
        manager = LaunchResourceManager(
            self.launch_provider, node_group.owner_name, node_group.resource_prefix, self.retain_versions
        )
        manager.discover(state.scaling_group)
        if state.scaling_group is None and manager.adopt(node_group.resource_prefix):
            log.info(f"[NodeGroup:{node_group.owner_name}] reusing {self.launch_provider.kind} {manager.name}")
        self.state, self.manager = state, manager

        report = manager.drift(desired)
        status = NodeGroupStatus(drifted=report.drifted, drift_reasons=report.messages())

        if apply and report.drifted:
            manager.create(desired)
        if apply:
            status.deleted_versions = manager.delete(retain_versions=self.retain_versions)

        state.launch_resource = manager.target_resource
        state.latest_version = manager.latest_version
        if state.scaling_group is not None:
            status.rotation_needed = manager.rotation_needed(state.scaling_group)
            status.active_scaling_group_name = state.scaling_group.name
            status.current_min = state.scaling_group.min_size
            status.current_max = state.scaling_group.max_size

        status.active_launch_resource_name = manager.name
        status.latest_version = state.latest_version.version_number if state.latest_version is not None else None
        status.lifecycle = state.lifecycle
        status.spot_price = state.spot_price
        status.nodes_arn = (state.role.arn or "") if state.role is not None else ""
        status.vpc_id = state.vpc_id or ""
        log.info(
            f"[NodeGroup:{node_group.owner_name}] reconciled: drifted={status.drifted} "
            f"rotation_needed={status.rotation_needed} launch_resource={status.active_launch_resource_name}"
        )
        return status
