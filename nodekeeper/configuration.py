import logging
import threading
import time
import uuid
from functools import lru_cache
from typing import Any, ClassVar, Dict, Optional, Type

from attrs import define, field, fields_dict, validators
from boto3.session import Session as BotoSession
from botocore.client import BaseClient
from botocore.config import Config as BotoConfig

from nodekeeper.json import from_json as from_js
from nodekeeper.types import Json

log = logging.getLogger("nodekeeper.config")

LaunchTemplateMode = "launch_template"
LaunchConfigurationMode = "launch_configuration"
DefaultRetainVersions = 10


@define(hash=True, slots=False)
class AwsSessionHolder:
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    role_arn: Optional[str] = None
    # Only here to override in tests
    session_class_factory: Type[BotoSession] = BotoSession
    kind: ClassVar[str] = "aws_session_holder"
    session_lock: threading.Lock = threading.Lock()

    # noinspection PyUnusedLocal
    @lru_cache(maxsize=128)
    def __direct_session(self, profile: Optional[str], region: Optional[str]) -> BotoSession:
        if profile:
            return self.session_class_factory(profile_name=profile, region_name=region)
        else:
            return self.session_class_factory(
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name=region,
            )

    # noinspection PyUnusedLocal
    @lru_cache(maxsize=128)
    def __sts_session(
        self, role_arn: str, profile: Optional[str], region: Optional[str], cache_key: int
    ) -> BotoSession:
        session = self.__direct_session(profile, region)
        sts = session.client("sts")
        log.info(f"Create AWS session by assuming role: {role_arn}.")
        token = sts.assume_role(
            RoleArn=role_arn,
            RoleSessionName=f"nodekeeper-{str(uuid.uuid4())}",
            DurationSeconds=3600,  # 1 hour
        )
        credentials = token["Credentials"]
        return self.session_class_factory(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=region,
        )

    def _session(self, aws_profile: Optional[str] = None, region: Optional[str] = None) -> BotoSession:
        """
        Note: the session is not thread safe - caller needs to synchronize access.
        Consider using the client() method instead.
        """
        if self.role_arn is None:
            return self.__direct_session(aws_profile, region)
        else:
            # the sts session is valid for 1 hour: renew it every 10 minutes
            return self.__sts_session(self.role_arn, aws_profile, region, int(time.time() / 600))

    def client(
        self,
        aws_service: str,
        aws_profile: Optional[str] = None,
        region_name: Optional[str] = None,
        config: Optional[BotoConfig] = None,
    ) -> BaseClient:
        with self.session_lock:
            session = self._session(aws_profile, region_name)
            return session.client(aws_service, region_name=region_name, config=config)


@define(slots=False)
class NodeKeeperConfig:
    kind: ClassVar[str] = "nodekeeper"
    access_key_id: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Access Key ID (null to load from env - recommended)"},
    )
    secret_access_key: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Secret Access Key (null to load from env - recommended)"},
    )
    role_arn: Optional[str] = field(default=None, metadata={"description": "ARN of the IAM role to assume"})
    profile: Optional[str] = field(default=None, metadata={"description": "AWS profile to use"})
    region: Optional[str] = field(default=None, metadata={"description": "AWS region of the node groups"})
    provisioning_mode: str = field(
        default=LaunchTemplateMode,
        validator=validators.in_([LaunchTemplateMode, LaunchConfigurationMode]),
        metadata={"description": "Launch resource kind: launch_template or launch_configuration"},
    )
    retain_versions: int = field(
        default=DefaultRetainVersions,
        metadata={"description": "Number of launch resource versions to keep. 0 means the default of 10."},
    )
    cluster_name_tag: str = field(
        default="instancemgr.keikoproj.io/cluster-name",
        metadata={"description": "Tag key that holds the cluster name of an owned scaling group"},
    )
    node_group_name_tag: str = field(
        default="instancemgr.keikoproj.io/instancegroup-name",
        metadata={"description": "Tag key that holds the node group name of an owned scaling group"},
    )
    node_group_namespace_tag: str = field(
        default="instancemgr.keikoproj.io/instancegroup-namespace",
        metadata={"description": "Tag key that holds the node group namespace of an owned scaling group"},
    )
    spot_recommendations: bool = field(
        default=True,
        metadata={"description": "Adopt spot prices from SpotRecommendationGiven kubernetes events"},
    )
    kubeconfig: Optional[str] = field(
        default=None,
        metadata={"description": "Path to the kubeconfig file (null for in-cluster or default config)"},
    )
    kube_context: Optional[str] = field(default=None, metadata={"description": "Kubernetes context to use"})

    @staticmethod
    def from_json(json: Json) -> "NodeKeeperConfig":
        valid_fields = fields_dict(NodeKeeperConfig).keys()
        for field_name in json.copy().keys():
            if field_name not in valid_fields:
                del json[field_name]
        return from_js(json, NodeKeeperConfig)

    def effective_retain_versions(self) -> int:
        return self.retain_versions if self.retain_versions > 0 else DefaultRetainVersions

    _lock: threading.RLock = field(factory=threading.RLock)
    _holder: Optional[AwsSessionHolder] = field(default=None)

    def __getstate__(self) -> Dict[str, Any]:
        d = self.__dict__.copy()
        d.pop("_lock", None)
        d.pop("_holder", None)
        return d

    def __setstate__(self, d: Dict[str, Any]) -> None:
        d["_lock"] = threading.RLock()
        d["_holder"] = None
        self.__dict__.update(d)

    def sessions(self) -> AwsSessionHolder:
        if self._holder is None:
            with self._lock:
                if self._holder is None:
                    log.debug("Creating a new AWS session holder")
                    self._holder = AwsSessionHolder(
                        access_key_id=self.access_key_id,
                        secret_access_key=self.secret_access_key,
                        role_arn=self.role_arn,
                    )
        return self._holder
