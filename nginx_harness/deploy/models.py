import enum
import threading
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


class DeploymentState(enum.Enum):
    """The states a deployment session moves through."""
    IDLE = "idle"
    CONFIG_RENDERED = "config_rendered"
    PROXY_LAUNCHING = "proxy_launching"
    PROXY_LAUNCHED = "proxy_launched"
    PID_RESOLVED = "pid_resolved"
    BACKEND_READY = "backend_ready"
    BACKEND_FAILED = "backend_failed"
    RUNNING = "running"
    FAILED = "failed"
    STOP_REQUESTED = "stop_requested"
    STOPPED = "stopped"
    STOP_FAILED = "stop_failed"


@dataclass
class DeploymentParameters:
    """
    What the caller wants deployed.

    :param application_path: Directory of the application; also receives the
        nginx PID file and logs.
    :param server_config_template_content: The nginx.conf template with
        ``[user]``, ``[errorlog]``, ``[accesslog]``, ``[listenPort]``,
        ``[redirectUri]`` and ``[pidFile]`` placeholders.
    :param application_base_uri_hint: Public URI nginx should listen on. A
        free localhost port is picked when empty.
    :param publish_application_before_deployment: Run the publish hook first.
    """
    application_path: Path
    server_config_template_content: str
    application_base_uri_hint: Optional[str] = None
    publish_application_before_deployment: bool = False

    def __post_init__(self) -> None:
        self.application_path = Path(self.application_path)


@dataclass(frozen=True)
class TemplateValues:
    user: str
    error_log_path: str
    access_log_path: str
    listen_port: int
    redirect_uri: str
    pid_file_path: str


@dataclass(frozen=True)
class RenderedConfig:
    content: str
    path: Path
    pid_file: Path
    error_log: Path
    access_log: Path


@dataclass(frozen=True)
class WaitResult:
    """Outcome of a bounded wait: exited with ``exit_code``, or ``timed_out``."""
    exit_code: Optional[int] = None
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_code == 0


@dataclass(frozen=True)
class DeploymentResult:
    content_root: Path
    application_base_uri: str
    deployment_parameters: DeploymentParameters
    host_shutdown_event: threading.Event
