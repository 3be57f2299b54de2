"""Exceptions raised by the nginx deployer."""


class DeploymentError(Exception):
    """Base class for every failure of a deployment session."""


class LaunchError(DeploymentError):
    """The nginx start command exited non-zero or did not exit in time."""


class HandshakeError(DeploymentError):
    """The PID file was empty, malformed, or named a process that is not running."""


class BackendExitedError(DeploymentError):
    """The backend application exited while it was being waited on."""


class ReadinessError(DeploymentError):
    """The backend never answered successfully within the retry budget."""


class ShutdownError(DeploymentError):
    """nginx was still running after the stop command and its wait bound."""
