from nodekeeper.aws_client import AwsClient
from nodekeeper.configuration import LaunchConfigurationMode, LaunchTemplateMode, NodeKeeperConfig
from nodekeeper.exceptions import ConfigurationError
from nodekeeper.launch.launch_configuration import AwsLaunchConfigurationProvider
from nodekeeper.launch.launch_template import AwsLaunchTemplateProvider
from nodekeeper.launch.manager import LaunchResourceManager
from nodekeeper.launch.provider import LaunchResourceProvider

__all__ = [
    "AwsLaunchConfigurationProvider",
    "AwsLaunchTemplateProvider",
    "LaunchResourceManager",
    "LaunchResourceProvider",
    "launch_provider_for",
]


def launch_provider_for(config: NodeKeeperConfig, client: AwsClient) -> LaunchResourceProvider:
    if config.provisioning_mode == LaunchTemplateMode:
        return AwsLaunchTemplateProvider(client)
    elif config.provisioning_mode == LaunchConfigurationMode:
        return AwsLaunchConfigurationProvider(client)
    else:
        raise ConfigurationError(f"Unknown provisioning mode: {config.provisioning_mode}")
