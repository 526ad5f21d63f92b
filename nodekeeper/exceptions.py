from typing import Optional


class NodeKeeperError(Exception):
    """Base exception for nodekeeper."""

    pass


class DiscoveryError(NodeKeeperError):
    """Raised when cloud resources required for a reconcile pass can not be listed."""

    pass


class ConfigurationError(NodeKeeperError):
    """Raised when the configuration or a desired spec is invalid."""

    pass


class ProviderMutationError(NodeKeeperError):
    """
    A create, promote or delete call against the cloud provider failed.
    The original provider error is available as `cause` and as `__cause__`.
    """

    def __init__(self, operation: str, name: str, cause: Optional[Exception] = None) -> None:
        self.operation = operation
        self.name = name
        self.cause = cause
        message = f"failed to {operation} {name}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
