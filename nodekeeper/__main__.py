import json
import logging
import sys
from typing import List, Optional

from cattrs.errors import BaseValidationError

from nodekeeper import logger
from nodekeeper.args import ArgumentParser, get_arg_parser
from nodekeeper.aws_client import AwsClient
from nodekeeper.cloud import AwsNodeGroupCloud
from nodekeeper.configuration import (
    DefaultRetainVersions,
    LaunchConfigurationMode,
    LaunchTemplateMode,
    NodeKeeperConfig,
)
from nodekeeper.discovery import CloudStateAggregator
from nodekeeper.exceptions import ConfigurationError, NodeKeeperError
from nodekeeper.json import from_json, to_json_str
from nodekeeper.launch import launch_provider_for
from nodekeeper.model import DesiredComputeSpec, NodeGroup
from nodekeeper.recommendations import K8sRecommendationSource, NoRecommendationSource, RecommendationSource
from nodekeeper.reconciler import ReconcilePass

log = logging.getLogger("nodekeeper")


def add_args(arg_parser: ArgumentParser) -> None:
    arg_parser.add_argument("--cluster-name", help="Name of the cluster", dest="cluster_name", default=None)
    arg_parser.add_argument("--name", help="Name of the node group", dest="name", default=None)
    arg_parser.add_argument("--namespace", help="Namespace of the node group", dest="namespace", default="default")
    arg_parser.add_argument("--spec", help="Path to the desired launch spec (json)", dest="spec", default=None)
    arg_parser.add_argument("--role-name", help="IAM role of the node group", dest="role_name", default=None)
    arg_parser.add_argument(
        "--instance-profile-name",
        help="IAM instance profile of the node group",
        dest="instance_profile_name",
        default=None,
    )
    arg_parser.add_argument("--spot-price", help="Configured spot price", dest="spot_price", default="")
    arg_parser.add_argument("--region", help="AWS region", dest="region", default=None)
    arg_parser.add_argument("--profile", help="AWS profile", dest="profile", default=None)
    arg_parser.add_argument("--role-arn", help="IAM role to assume", dest="role_arn", default=None)
    arg_parser.add_argument(
        "--provisioning-mode",
        help="Launch resource kind (default: launch_template)",
        dest="provisioning_mode",
        choices=[LaunchTemplateMode, LaunchConfigurationMode],
        default=LaunchTemplateMode,
    )
    arg_parser.add_argument(
        "--retain-versions",
        help=f"Number of launch versions to keep (default: {DefaultRetainVersions})",
        dest="retain_versions",
        type=int,
        default=DefaultRetainVersions,
    )
    arg_parser.add_argument(
        "--no-spot-recommendations",
        help="Ignore spot recommendation events",
        dest="no_spot_recommendations",
        action="store_true",
        default=False,
    )
    arg_parser.add_argument("--kubeconfig", help="Path to the kubeconfig file", dest="kubeconfig", default=None)
    arg_parser.add_argument("--kube-context", help="Kubernetes context", dest="kube_context", default=None)
    arg_parser.add_argument(
        "--apply",
        help="Create a new launch version on drift and delete old versions",
        dest="apply",
        action="store_true",
        default=False,
    )


def load_spec(path: str) -> DesiredComputeSpec:
    try:
        with open(path) as f:
            return from_json(json.load(f), DesiredComputeSpec)
    except (OSError, ValueError, TypeError, KeyError, BaseValidationError) as e:
        raise ConfigurationError(f"Can not read desired spec from {path}: {e}") from e


def main(argv: Optional[List[str]] = None) -> int:
    arg_parser = get_arg_parser(description="Reconcile the launch resources of a node group")
    logger.add_args(arg_parser)
    add_args(arg_parser)
    args = arg_parser.parse_args(argv)
    # required options can be defined via environment variables as well
    missing = [f"--{n.replace('_', '-')}" for n in ("cluster_name", "name", "spec") if not getattr(args, n)]
    if missing:
        arg_parser.error(f"the following arguments are required: {', '.join(missing)}")
    logger.setup_logger("nodekeeper", verbose=args.verbose, quiet=args.quiet)

    try:
        config = NodeKeeperConfig(
            role_arn=args.role_arn,
            profile=args.profile,
            region=args.region,
            provisioning_mode=args.provisioning_mode,
            retain_versions=args.retain_versions,
            spot_recommendations=not args.no_spot_recommendations,
            kubeconfig=args.kubeconfig,
            kube_context=args.kube_context,
        )
        desired = load_spec(args.spec)
        node_group = NodeGroup(
            cluster_name=args.cluster_name,
            name=args.name,
            namespace=args.namespace,
            role_name=args.role_name,
            instance_profile_name=args.instance_profile_name,
            spot_price=args.spot_price,
        )
        client = AwsClient(config)
        provider = launch_provider_for(config, client)
        recommendations: RecommendationSource = (
            K8sRecommendationSource.from_config(config.kubeconfig, config.kube_context)
            if config.spot_recommendations
            else NoRecommendationSource()
        )
        aggregator = CloudStateAggregator(config, AwsNodeGroupCloud(client, provider), recommendations)
        status = ReconcilePass(aggregator, provider, config.effective_retain_versions()).run(
            node_group, desired, apply=args.apply
        )
    except NodeKeeperError as e:
        log.error(f"Reconciliation failed: {e}")
        return 1

    print(to_json_str(status, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
