import sys
import logging
import subprocess
from pathlib import Path

from nginx_harness.deploy.process_utils import (
    log_process_output, nginx_start_args, nginx_stop_args, run_and_wait, start_process, wait_for_exit,
)


def _python(code):
    return [sys.executable, "-c", code]


def test_nginx_commands():
    assert nginx_start_args(Path("/usr/sbin/nginx"), Path("/tmp/a.conf"))[1:] == ["-c", "/tmp/a.conf"]
    assert nginx_stop_args(Path("/usr/sbin/nginx"), Path("/tmp/a.conf"))[1:] == ["-s", "stop", "-c", "/tmp/a.conf"]


def test_run_and_wait_reports_exit_code():
    result = run_and_wait(_python("import sys; sys.exit(3)"), None, "exit3", timeout=20)

    assert not result.timed_out
    assert result.exit_code == 3
    assert not result.succeeded


def test_run_and_wait_success():
    result = run_and_wait(_python("pass"), None, "noop", timeout=20)

    assert result.succeeded


def test_run_and_wait_times_out_and_kills_invocation():
    result = run_and_wait(_python("import time; time.sleep(60)"), None, "sleeper", timeout=0.5)

    assert result.timed_out
    assert result.exit_code is None


def test_wait_for_exit_times_out_without_raising(sleeper):
    result = wait_for_exit(sleeper, timeout=0.1)

    assert result.timed_out
    assert sleeper.poll() is None


def test_stdin_is_not_inherited():
    code = "import sys; sys.exit(0 if sys.stdin.read() == '' else 1)"

    result = run_and_wait(_python(code), None, "stdin", timeout=20)

    assert result.exit_code == 0


def test_output_is_logged_line_by_line(caplog):
    caplog.set_level(logging.DEBUG)
    code = "import sys; print('first'); print('second'); print('broken', file=sys.stderr)"
    proc = subprocess.Popen(_python(code), stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    readers = log_process_output(proc, "echo")
    proc.wait(timeout=20)
    for reader in readers:
        reader.join(timeout=5)

    records = [(r.name, r.levelno, r.getMessage()) for r in caplog.records if r.name == "proc.echo"]
    assert ("proc.echo", logging.INFO, "first") in records
    assert ("proc.echo", logging.INFO, "second") in records
    assert ("proc.echo", logging.ERROR, "broken") in records


def test_start_process_passes_extra_environment():
    proc = start_process(
        _python("import os, sys; sys.exit(0 if os.environ['HARNESS_TEST'] == 'yes' else 1)"),
        None, "env", env={"HARNESS_TEST": "yes"},
    )

    assert proc.wait(timeout=20) == 0


def test_start_process_uses_working_directory(tmp_path):
    marker = tmp_path / "marker"
    proc = start_process(_python("open('marker', 'w').close()"), tmp_path, "cwd")

    assert proc.wait(timeout=20) == 0
    assert marker.exists()
