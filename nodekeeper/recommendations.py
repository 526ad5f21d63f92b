from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional

from kubernetes import config as k8s_config
from kubernetes.client import ApiClient, Configuration

from nodekeeper.model import SpotRecommendationEvent
from nodekeeper.types import Json
from nodekeeper.utils import maybe_utc

log = logging.getLogger("nodekeeper.recommendations")

SpotRecommendationReason = "SpotRecommendationGiven"


class RecommendationSource(ABC):
    @abstractmethod
    def list_recommendation_events(self, group_name: str) -> List[SpotRecommendationEvent]:
        pass


class NoRecommendationSource(RecommendationSource):
    def list_recommendation_events(self, group_name: str) -> List[SpotRecommendationEvent]:
        return []


def recommendation_from(js: Json) -> Optional[SpotRecommendationEvent]:
    """
    Parse a kubernetes event of reason SpotRecommendationGiven.
    The message is a json object: {"apiVersion": "v1alpha1", "spotPrice": "0.80", "useSpot": true}
    """
    group_name = (js.get("involvedObject") or {}).get("name")
    try:
        message = json.loads(js.get("message") or "")
    except ValueError:
        log.warning(f"Can not parse spot recommendation event of {group_name}: {js.get('message')}")
        return None
    if not group_name or not isinstance(message, dict):
        return None
    timestamp = (
        maybe_utc(js.get("lastTimestamp"))
        or maybe_utc(js.get("eventTime"))
        or maybe_utc((js.get("metadata") or {}).get("creationTimestamp"))
    )
    return SpotRecommendationEvent(
        group_name=group_name,
        price=str(message.get("spotPrice") or ""),
        recommended=bool(message.get("useSpot")),
        timestamp=timestamp,
    )


class K8sRecommendationSource(RecommendationSource):
    """Spot recommendations published as kubernetes events on the scaling group."""

    def __init__(self, api_client: ApiClient):
        self.api_client = api_client

    def get(self, path: str, field_selector: str) -> Json:
        result, code, header = self.api_client.call_api(
            path,
            "GET",
            query_params=[("fieldSelector", field_selector)],
            auth_settings=["BearerToken"],
            response_type="object",
        )
        return result  # type: ignore

    def list_recommendation_events(self, group_name: str) -> List[SpotRecommendationEvent]:
        selector = f"involvedObject.name={group_name},reason={SpotRecommendationReason}"
        result = self.get("/api/v1/events", selector)
        events = []
        for js in result.get("items", []):
            event = recommendation_from(js)
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def from_config(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> K8sRecommendationSource:
        if kubeconfig is None and "KUBERNETES_SERVICE_HOST" in os.environ:
            configuration = Configuration()
            k8s_config.load_incluster_config(client_configuration=configuration)
            return K8sRecommendationSource(ApiClient(configuration))
        return K8sRecommendationSource(k8s_config.new_client_from_config(config_file=kubeconfig, context=context))
