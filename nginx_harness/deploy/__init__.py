"""
The deploy package.
Places a self-hosted backend application behind an nginx reverse proxy.

The central NginxDeployer class renders the nginx config, launches nginx,
resolves its master process through the PID file, waits for the backend and
tears everything down again. The helper modules each own one of those steps.
"""
from .errors import (
    BackendExitedError, DeploymentError, HandshakeError, LaunchError, ReadinessError, ShutdownError,
)
from .models import DeploymentParameters, DeploymentResult, DeploymentState
from .retry import RetryPolicy
from .selfhost import BackendLauncher, CommandBackendLauncher
from .supervisor import NginxDeployer

__all__ = [
    "NginxDeployer", "DeploymentParameters", "DeploymentResult", "DeploymentState",
    "BackendLauncher", "CommandBackendLauncher", "RetryPolicy",
    "DeploymentError", "LaunchError", "HandshakeError", "BackendExitedError",
    "ReadinessError", "ShutdownError",
]
