"""Error taxonomy for cluster deployment.

Every error is fatal for the run unless noted otherwise; the CLI maps any
``DeployError`` to exit code 1.
"""

from typing import Optional


class DeployError(Exception):
    """Base class for all deployment failures."""


class PreconditionFailed(DeployError):
    """Host environment is not ready for deployment."""


class MissingFile(DeployError):
    """A required input file does not exist."""


class MalformedDefinition(DeployError):
    """Cluster definition has no nodes or a node without hostname."""


class NetworkProvisioningFailed(DeployError):
    """Virtual network define/autostart/start sequence failed part way."""


class WorkspaceWriteFailed(DeployError):
    """Filesystem error while preparing a node workspace."""


class MediumBuildFailed(WorkspaceWriteFailed):
    """Config medium could not be created, formatted, or populated."""


class ProvisioningFailed(DeployError):
    """Creating a single node's VM failed."""

    def __init__(self, hostname: str, message: str) -> None:
        super().__init__(f"{hostname}: {message}")
        self.hostname = hostname


class UserAborted(DeployError):
    """Operator declined an interactive confirmation."""


class CommandError(Exception):
    """Represents a failure when executing an external command.

    Attributes:
        message: Description of the failure.
        return_code: Exit code if the process ran.
        stderr: Captured standard error, if any.
    """

    def __init__(self, message: str, return_code: Optional[int] = None, stderr: str = "") -> None:
        super().__init__(message)
        self.return_code = return_code
        self.stderr = stderr
