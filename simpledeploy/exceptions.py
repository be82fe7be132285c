"""
Deployment exceptions.

Fatal failures raise one of these; recoverable ones (chmod, symlink, cache
entry deletion) are collected as strings instead.
"""


class DeployError(Exception):
    """Base class for all simpledeploy failures."""


class ConfigError(DeployError):
    """
    Raised when .deploy.yml is missing, unreadable or fails validation.

    Examples:
        - target without a "protocol" key
        - options without "host" or "root"
        - transferMode other than ascii/binary
    """


class InvalidTargetError(ConfigError):
    """Raised when a deployment target does not exist or uses a reserved name."""


class RemoteConnectionError(DeployError):
    """Raised when the remote host cannot be reached, authenticated or rooted."""


class DirectoryCreationError(DeployError):
    """Raised when a remote directory cannot be created."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        msg = f"Failed to create target directory: {path}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class TransferError(DeployError):
    """Raised when a local file cannot be written to the remote host."""

    def __init__(self, local_path: str, remote_path: str, reason: str = ""):
        self.local_path = local_path
        self.remote_path = remote_path
        msg = f"Failed to copy {local_path} to {remote_path}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)
