import abc
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple, Union

from nginx_harness.local.config import effective_settings as config
from nginx_harness.deploy.process_utils import start_process

log = logging.getLogger(__name__)


class BackendLauncher(abc.ABC):
    """
    Starts and stops the application nginx is placed in front of.

    The deployer only observes the backend: it reads the exit event
    returned by :meth:`start` and calls :meth:`stop` during disposal.
    """

    @abc.abstractmethod
    def start(self, redirect_uri: str) -> Tuple[str, threading.Event]:
        """
        Starts the backend listening on ``redirect_uri``.

        :return: The URI the backend actually listens on, and an event set
            once the backend has exited.
        """

    @abc.abstractmethod
    def stop(self) -> None:
        """Stops the backend. Must be safe to call when it never started."""


class CommandBackendLauncher(BackendLauncher):
    """
    Runs the backend as an external command.

    ``{url}`` in any argument is replaced with the address to listen on, which
    is also exported in the ``BACKEND_URLS`` environment variable.
    """

    def __init__(
        self,
        args: List[str],
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Dict[str, str]] = None,
        name: str = "backend",
    ) -> None:
        self.args = list(args)
        self.cwd = cwd
        self.env = dict(env or {})
        self.name = name
        self.process: Optional[subprocess.Popen] = None
        self.exit_event = threading.Event()
        self._stopping = threading.Event()

    def start(self, redirect_uri: str) -> Tuple[str, threading.Event]:
        if self.process is not None:
            raise RuntimeError(f"{self.name} has already been started")

        args = [arg.replace("{url}", redirect_uri) for arg in self.args]
        env = dict(self.env)
        env[config.BACKEND_URLS_ENV_VAR] = redirect_uri
        self.process = start_process(args, self.cwd, self.name, log, env=env)

        threading.Thread(
            target=self._watch_exit,
            daemon=True,
            name=f"{self.name}-exit-watcher"
        ).start()
        return redirect_uri, self.exit_event

    def _watch_exit(self) -> None:
        """Sets the exit event once the backend process ends."""
        exit_code = self.process.wait()
        if not self._stopping.is_set():
            log.warning(f"{self.name} exited unexpectedly with code {exit_code}")
        else:
            log.info(f"{self.name} exited with code {exit_code}")
        self.exit_event.set()

    def _identify_processes_to_stop(self) -> Set[psutil.Process]:
        try:
            parent = psutil.Process(self.process.pid)
            return {parent, *parent.children(recursive=True)}
        except psutil.NoSuchProcess:
            return set()

    def stop(self) -> None:
        if self.process is None or self._stopping.is_set():
            return
        self._stopping.set()

        procs = self._identify_processes_to_stop()
        for proc in procs:
            try:
                log.debug(f"Sending SIGTERM to {self.name} process (PID {proc.pid})")
                proc.terminate()
            except psutil.NoSuchProcess:
                continue

        _, alive = psutil.wait_procs(list(procs), timeout=config.BACKEND_STOP_TIMEOUT)
        for proc in alive:
            try:
                log.warning(f"Killing stubborn {self.name} process (PID {proc.pid}).")
                proc.kill()
            except psutil.NoSuchProcess:
                continue

        try:
            self.process.wait(timeout=config.BACKEND_STOP_TIMEOUT)
        except subprocess.TimeoutExpired:
            log.error(f"{self.name} (PID {self.process.pid}) is still running after being killed")
            return
        log.info(f"{self.name} stopped.")
