import re
import sys
import logging
import threading
import subprocess
from pathlib import Path

import pytest

from nginx_harness.deploy.models import DeploymentParameters, WaitResult
from nginx_harness.deploy.selfhost import BackendLauncher

TEMPLATE = """\
user [user];
error_log [errorlog];
pid [pidFile];
events {}
http {
    access_log [accesslog];
    server {
        listen [listenPort];
        location / { proxy_pass [redirectUri]; }
    }
}
"""


class FakeBackend(BackendLauncher):
    """A backend launcher that starts nothing and records calls."""

    def __init__(self):
        self.started_with = None
        self.stop_calls = 0
        self.exit_event = threading.Event()

    def start(self, redirect_uri):
        self.started_with = redirect_uri
        return redirect_uri, self.exit_event

    def stop(self):
        self.stop_calls += 1


class FakeNginx:
    """
    Stands in for process_utils.run_and_wait when the command is nginx.

    On start it writes ``pid_content`` to the PID file named in the config
    (unless it is None); on stop it runs ``on_stop``.
    """

    def __init__(self, start_result=WaitResult(exit_code=0), stop_result=WaitResult(exit_code=0),
                 pid_content=None, on_stop=None):
        self.start_result = start_result
        self.stop_result = stop_result
        self.pid_content = pid_content
        self.on_stop = on_stop
        self.calls = []

    def __call__(self, args, cwd, name, timeout, phase_log=None):
        self.calls.append(list(args))
        config_path = Path(args[-1])
        if "-s" in args:
            if self.on_stop:
                self.on_stop()
            return self.stop_result
        if self.pid_content is not None:
            pid_path = re.search(r"^pid (.+);$", config_path.read_text(), re.MULTILINE).group(1)
            Path(pid_path).write_text(self.pid_content)
        return self.start_result

    @property
    def stop_calls(self):
        return [c for c in self.calls if "-s" in c]


@pytest.fixture
def app_dir(tmp_path):
    path = tmp_path / "app"
    path.mkdir()
    return path


@pytest.fixture
def parameters(app_dir):
    return DeploymentParameters(
        application_path=app_dir,
        server_config_template_content=TEMPLATE,
        application_base_uri_hint="http://localhost:5123/",
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def sleeper():
    """A real child process that runs until killed."""
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    yield proc
    if proc.poll() is None:
        proc.kill()
        proc.wait()


@pytest.fixture
def restore_root_logging():
    """Keeps setup_logging from leaking handlers into other tests."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
