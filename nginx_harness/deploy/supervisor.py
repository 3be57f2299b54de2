import time
import psutil
from pathlib import Path
from typing import Callable, Optional, Union

from nginx_harness.local.config import effective_settings as config
from nginx_harness.log.context import PhaseLogger, phase_logger
from nginx_harness.deploy import handshake, process_utils, readiness, template
from nginx_harness.deploy.errors import DeploymentError, LaunchError, ReadinessError, ShutdownError
from nginx_harness.deploy.models import (
    DeploymentParameters, DeploymentResult, DeploymentState, RenderedConfig,
)
from nginx_harness.deploy.retry import RetryPolicy
from nginx_harness.deploy.selfhost import BackendLauncher
from nginx_harness.deploy.uri import build_test_uri, get_port


PublishStep = Callable[[DeploymentParameters], None]


class NginxDeployer:
    """
    Deploys a backend application behind an nginx reverse proxy.

    One instance runs one session: :meth:`deploy` once, then :meth:`dispose`
    once. ``dispose`` must be called whether or not ``deploy`` succeeded; it
    stops nginx, always removes the rendered config file and stops the backend.
    The deployer also works as a context manager that disposes on exit.
    """

    def __init__(
        self,
        parameters: DeploymentParameters,
        backend: BackendLauncher,
        publish: Optional[PublishStep] = None,
        retry_policy: Optional[RetryPolicy] = None,
        nginx_executable: Optional[Union[str, Path]] = None,
        wait_timeout: Optional[float] = None,
        user: Optional[str] = None,
    ) -> None:
        self.parameters = parameters
        self.backend = backend
        self.publish = publish
        self.retry_policy = retry_policy
        self.nginx_executable = Path(nginx_executable or config.NGINX_EXECUTABLE_PATH)
        self.wait_timeout = config.NGINX_WAIT_TIMEOUT if wait_timeout is None else wait_timeout
        self.user = config.NGINX_USER if user is None else user

        self.state = DeploymentState.IDLE
        self.config_file: Optional[RenderedConfig] = None
        self.nginx_process: Optional[psutil.Process] = None
        self.result: Optional[DeploymentResult] = None
        self._backend_started = False
        self._disposed = False

    def __enter__(self) -> "NginxDeployer":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.dispose()

    #* --- Deploy ---
    def deploy(self) -> DeploymentResult:
        """
        Starts the backend and nginx, and waits until the backend is ready.

        :return: Where the caller should send requests, and the backend's exit event.
        :raises DeploymentError: If the base URI hint names no port.
        :raises LaunchError: If ``nginx -c`` failed or did not exit in time.
        :raises HandshakeError: If the nginx PID file is unusable.
        :raises ReadinessError: If the backend never became ready.
        """
        if self.state is not DeploymentState.IDLE or self._disposed:
            raise DeploymentError(f"Deployer cannot deploy from state '{self.state.value}'")

        phase_log = phase_logger(__name__, "Deploy")
        try:
            self.result = self._deploy(phase_log)
        except Exception:
            if self.state is not DeploymentState.BACKEND_FAILED:
                self.state = DeploymentState.FAILED
            raise
        self.state = DeploymentState.RUNNING
        return self.result

    def _deploy(self, phase_log: PhaseLogger) -> DeploymentResult:
        uri = self.parameters.application_base_uri_hint or build_test_uri(host=config.BACKEND_HOST)
        try:
            get_port(uri)
        except ValueError as e:
            phase_log.error(str(e))
            raise DeploymentError(f"Invalid application base URI '{uri}'") from e
        redirect_uri = build_test_uri(host=config.BACKEND_HOST)

        if self.parameters.publish_application_before_deployment:
            self._publish(phase_log)

        backend_uri, exit_event = self.backend.start(redirect_uri)
        self._backend_started = True

        self._setup_nginx(backend_uri, uri, phase_log.child("SetupNginx"))
        phase_log.info(f"Application ready at URL: {uri}")

        try:
            readiness.wait_for_backend(backend_uri, exit_event, self.retry_policy, phase_log)
        except ReadinessError:
            self.state = DeploymentState.BACKEND_FAILED
            raise
        self.state = DeploymentState.BACKEND_READY

        return DeploymentResult(
            content_root=self.parameters.application_path,
            application_base_uri=uri,
            deployment_parameters=self.parameters,
            host_shutdown_event=exit_event,
        )

    def _publish(self, phase_log: PhaseLogger) -> None:
        if self.publish is None:
            raise DeploymentError("Publishing was requested but no publish step was provided")
        phase_log.info(f"Publishing application at {self.parameters.application_path}")
        self.publish(self.parameters)

    def _setup_nginx(self, redirect_uri: str, listen_uri: str, phase_log: PhaseLogger) -> None:
        """Renders the config, runs ``nginx -c`` and resolves the nginx master process."""
        values = template.build_template_values(
            self.parameters.application_path, listen_uri, redirect_uri, self.user
        )
        self.config_file = template.render_config(
            self.parameters.server_config_template_content, values, phase_log
        )
        self.state = DeploymentState.CONFIG_RENDERED

        self.state = DeploymentState.PROXY_LAUNCHING
        try:
            result = process_utils.run_and_wait(
                process_utils.nginx_start_args(self.nginx_executable, self.config_file.path),
                None, "nginx start", self.wait_timeout, phase_log,
            )
        except OSError as e:
            raise LaunchError("Failed to start nginx") from e
        if not result.succeeded:
            reason = "timed out" if result.timed_out else f"exit code {result.exit_code}"
            phase_log.error(f"nginx start command failed ({reason})")
            raise LaunchError("Failed to start nginx")
        self.state = DeploymentState.PROXY_LAUNCHED

        self.nginx_process = handshake.resolve_pid_file(self.config_file.pid_file, phase_log)
        self.state = DeploymentState.PID_RESOLVED

    #* --- Dispose ---
    def dispose(self) -> None:
        """
        Stops nginx and the backend, and deletes the rendered config file.

        Safe to call after a failed or partial deploy; later calls do nothing.
        The config file is deleted even if stopping nginx failed, and only
        then is that failure raised.

        :raises ShutdownError: If nginx was still running after the wait bound.
        """
        if self._disposed:
            return
        self._disposed = True

        phase_log = phase_logger(__name__, "Dispose")
        try:
            if self.config_file is not None:
                try:
                    self._stop_nginx(phase_log)
                finally:
                    self._delete_config_file(phase_log)
        finally:
            if self._backend_started:
                self._stop_backend(phase_log)

    def _stop_backend(self, phase_log: PhaseLogger) -> None:
        # An error here must not replace a pending nginx stop failure.
        try:
            self.backend.stop()
        except psutil.Error as e:
            phase_log.error(f"Failed to stop the backend: {e}")

    def _stop_nginx(self, phase_log: PhaseLogger) -> None:
        deadline = time.monotonic() + self.wait_timeout
        self.state = DeploymentState.STOP_REQUESTED
        result = process_utils.run_and_wait(
            process_utils.nginx_stop_args(self.nginx_executable, self.config_file.path),
            None, "nginx stop", self.wait_timeout, phase_log,
        )
        phase_log.info("nginx stop command issued")

        if self.nginx_process is None:
            if result.timed_out:
                self.state = DeploymentState.STOP_FAILED
                phase_log.error(f"nginx stop command did not finish after {self.wait_timeout} seconds")
                raise ShutdownError("nginx failed to stop")
            phase_log.warning("No nginx process was resolved; cannot verify that it shut down")
            self.state = DeploymentState.STOPPED
            return

        remaining = max(0.0, deadline - time.monotonic())
        if handshake.process_has_exited(self.nginx_process, remaining):
            phase_log.info("nginx has shut down")
            self.state = DeploymentState.STOPPED
            return

        self.state = DeploymentState.STOP_FAILED
        phase_log.error(f"nginx did not shut down after {self.wait_timeout} seconds")
        phase_log.warning(f"Abandoning nginx process {self.nginx_process.pid}")
        raise ShutdownError("nginx failed to stop")

    def _delete_config_file(self, phase_log: PhaseLogger) -> None:
        phase_log.debug(f"Deleting config file: {self.config_file.path}")
        self.config_file.path.unlink(missing_ok=True)
