import sys

import pytest

from nginx_harness.deploy.selfhost import CommandBackendLauncher

SERVE_FOREVER = "import time; time.sleep(60)"


def test_start_substitutes_url_and_exports_it(tmp_path):
    out = tmp_path / "urls.txt"
    code = f"import os, sys; open({str(out)!r}, 'w').write(sys.argv[1] + ' ' + os.environ['BACKEND_URLS'])"
    launcher = CommandBackendLauncher([sys.executable, "-c", code, "{url}"])

    uri, exit_event = launcher.start("http://localhost:5555/")

    assert uri == "http://localhost:5555/"
    assert exit_event.wait(20)
    assert out.read_text() == "http://localhost:5555/ http://localhost:5555/"
    launcher.stop()


def test_unexpected_exit_sets_exit_event():
    launcher = CommandBackendLauncher([sys.executable, "-c", "import sys; sys.exit(4)"])

    _, exit_event = launcher.start("http://localhost:5556/")

    assert exit_event.wait(20)
    assert launcher.process.returncode == 4


def test_stop_terminates_backend():
    launcher = CommandBackendLauncher([sys.executable, "-c", SERVE_FOREVER])
    _, exit_event = launcher.start("http://localhost:5557/")
    assert not exit_event.is_set()

    launcher.stop()

    assert launcher.process.poll() is not None
    assert exit_event.wait(5)


def test_stop_before_start_is_a_noop():
    CommandBackendLauncher([sys.executable, "-c", SERVE_FOREVER]).stop()


def test_start_twice_is_rejected():
    launcher = CommandBackendLauncher([sys.executable, "-c", SERVE_FOREVER])
    launcher.start("http://localhost:5558/")
    try:
        with pytest.raises(RuntimeError):
            launcher.start("http://localhost:5558/")
    finally:
        launcher.stop()
