"""
nginx-harness: runs a test application behind a real nginx reverse proxy.
"""

from nginx_harness.deploy import (
    CommandBackendLauncher, DeploymentParameters, DeploymentResult, NginxDeployer,
)

__all__ = ["NginxDeployer", "DeploymentParameters", "DeploymentResult", "CommandBackendLauncher"]
