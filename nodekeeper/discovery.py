import logging
from typing import Dict, List, Optional, Sequence, Tuple

from nodekeeper.cloud import NodeGroupCloud
from nodekeeper.configuration import NodeKeeperConfig
from nodekeeper.exceptions import DiscoveryError, NodeKeeperError
from nodekeeper.model import (
    DiscoveredState,
    InstanceProfile,
    NodeGroup,
    Role,
    ScalingGroupSnapshot,
    SpotRecommendationEvent,
)
from nodekeeper.recommendations import RecommendationSource

log = logging.getLogger("nodekeeper.discovery")


def ownership_tags(config: NodeKeeperConfig, cluster_name: str, name: str, namespace: str) -> Dict[str, str]:
    return {
        config.cluster_name_tag: cluster_name,
        config.node_group_name_tag: name,
        config.node_group_namespace_tag: namespace,
    }


def latest_event(events: Sequence[SpotRecommendationEvent]) -> Optional[SpotRecommendationEvent]:
    # events without timestamp can not be proven to be recent: they sort first
    dated = sorted((e for e in events if e.timestamp is not None), key=lambda e: e.timestamp)  # type: ignore
    undated = [e for e in events if e.timestamp is None]
    ordered = undated + dated
    return ordered[-1] if ordered else None


def reconcile_spot_price(
    scaling_group: Optional[ScalingGroupSnapshot],
    events: Sequence[SpotRecommendationEvent],
    previous_price: str,
) -> str:
    """
    The most recent recommendation for the scaling group decides the spot price:
    a recommendation sets the suggested price, a withdrawal clears it.
    Recommendations are ignored until the scaling group has running instances.
    """
    if scaling_group is None or len(scaling_group.instances) == 0:
        return previous_price
    latest = latest_event([e for e in events if e.group_name == scaling_group.name])
    if latest is None:
        return previous_price
    return latest.price if latest.recommended else ""


class CloudStateAggregator:
    """Discovers the cloud resources owned by a node group."""

    def __init__(self, config: NodeKeeperConfig, cloud: NodeGroupCloud, recommendations: RecommendationSource) -> None:
        self.config = config
        self.cloud = cloud
        self.recommendations = recommendations

    def discover_ownership(self, cluster_name: str, name: str, namespace: str) -> List[ScalingGroupSnapshot]:
        expected = ownership_tags(self.config, cluster_name, name, namespace)
        try:
            groups = self.cloud.list_scaling_groups()
        except NodeKeeperError:
            raise
        except Exception as e:
            raise DiscoveryError(f"failed to describe autoscaling groups: {e}") from e
        return [group for group in groups if group.owned_by(expected)]

    def resolve_role_and_profile(
        self, role_name: Optional[str], profile_name: Optional[str]
    ) -> Tuple[Optional[Role], Optional[InstanceProfile]]:
        try:
            role = self.cloud.resolve_role(role_name) if role_name else None
            profile = self.cloud.resolve_instance_profile(profile_name) if profile_name else None
        except NodeKeeperError:
            raise
        except Exception as e:
            raise DiscoveryError(f"failed to resolve role {role_name} / instance profile {profile_name}: {e}") from e
        return role, profile

    def resolve_vpc(self, cluster_name: str) -> Optional[str]:
        try:
            return self.cloud.resolve_vpc(cluster_name)
        except NodeKeeperError:
            raise
        except Exception as e:
            raise DiscoveryError(f"failed to describe cluster {cluster_name}: {e}") from e

    def recommendation_events(self, scaling_group: Optional[ScalingGroupSnapshot]) -> List[SpotRecommendationEvent]:
        if scaling_group is None or len(scaling_group.instances) == 0:
            return []
        try:
            return self.recommendations.list_recommendation_events(scaling_group.name)
        except NodeKeeperError:
            raise
        except Exception as e:
            raise DiscoveryError(f"failed to list spot recommendations for {scaling_group.name}: {e}") from e

    def discover(self, node_group: NodeGroup) -> DiscoveredState:
        prefix = f"[NodeGroup:{node_group.owner_name}]"
        state = DiscoveredState()
        # without an explicitly named role or profile, the ones named after the node group are used
        state.role, state.instance_profile = self.resolve_role_and_profile(
            node_group.role_name or node_group.resource_prefix,
            node_group.instance_profile_name or node_group.resource_prefix,
        )

        state.owned_scaling_groups = self.discover_ownership(
            node_group.cluster_name, node_group.name, node_group.namespace
        )
        if len(state.owned_scaling_groups) > 1:
            names = [g.name for g in state.owned_scaling_groups]
            log.warning(f"{prefix} owns more than one scaling group: {names}. Using {names[0]}.")
        state.scaling_group = state.owned_scaling_groups[0] if state.owned_scaling_groups else None
        state.vpc_id = self.resolve_vpc(node_group.cluster_name)

        events = self.recommendation_events(state.scaling_group)
        state.spot_price = reconcile_spot_price(state.scaling_group, events, node_group.spot_price)
        if state.spot_price != node_group.spot_price:
            log.info(f"{prefix} spot price changed from '{node_group.spot_price}' to '{state.spot_price}'")
        if state.scaling_group is not None:
            log.debug(f"{prefix} discovered scaling group {state.scaling_group.name}")
        return state
