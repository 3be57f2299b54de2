import os
import sys
import logging
import threading
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from nginx_harness.deploy.models import WaitResult

log = logging.getLogger(__name__)


#* --- Command Definitions ---
def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    base_path = Path(base_path)
    if sys.platform == "win32" and not base_path.suffix:
        return base_path.with_suffix(".exe")
    return base_path


def nginx_start_args(executable: Path, config_file: Path) -> List[str]:
    """Arguments of the nginx invocation that starts the proxy from a config file."""
    return [str(get_executable_path(executable)), "-c", str(config_file)]


def nginx_stop_args(executable: Path, config_file: Path) -> List[str]:
    """Arguments of the separate nginx invocation that stops the proxy of a config file."""
    return [str(get_executable_path(executable)), "-s", "stop", "-c", str(config_file)]


#* --- Output Capture ---
def _read_pipe(pipe, process_name: str, level: int):
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            proc_logger.log(level, line)
    except Exception as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()


def log_process_output(process: subprocess.Popen, name: str) -> List[threading.Thread]:
    """
    Starts background threads to consume and log a process's stdout/stderr.

    Lines are logged as they arrive under the ``proc.<name>`` logger, stdout
    at INFO and stderr at ERROR.

    :param process: The `subprocess.Popen` object to monitor.
    :param name: The logical name of the process for logging context.
    :return: The started reader threads.
    """
    readers = []
    if process.stdout:
        readers.append(threading.Thread(
            target=_read_pipe,
            args=(process.stdout, name, logging.INFO),
            daemon=True,
            name=f"{name}-stdout"
        ))
    if process.stderr:
        readers.append(threading.Thread(
            target=_read_pipe,
            args=(process.stderr, name, logging.ERROR),
            daemon=True,
            name=f"{name}-stderr"
        ))
    for reader in readers:
        reader.start()
    return readers


#* --- Process Creation ---
def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific creation flags for subprocess.Popen."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}


def start_process(
    args: List[str],
    cwd: Optional[Union[str, Path]],
    name: str,
    phase_log: Union[logging.Logger, logging.LoggerAdapter] = log,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.Popen:
    """
    Launches an external process with its output captured to the log.

    stdin is redirected as well: a child inheriting the console input
    descriptor can block on it.

    :param args: The command line.
    :param cwd: Working directory of the process, or None for the current one.
    :param name: The logical name used for the ``proc.<name>`` logger.
    :param phase_log: The logger of the calling phase.
    :param env: Extra environment variables layered over ``os.environ``.
    :return: The running process.
    :raises OSError: If the executable cannot be started.
    """
    phase_log.info(f"Starting process: {name} ({' '.join(args)})")
    popen_env = None
    if env:
        popen_env = dict(os.environ)
        popen_env.update(env)
    try:
        process = subprocess.Popen(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            cwd=str(cwd) if cwd else None,
            env=popen_env,
            **_get_popen_creation_flags()
        )
    except OSError as e:
        phase_log.error(f"Failed to start process '{name}': {e}")
        raise

    log_process_output(process, name)
    phase_log.debug(f"{name} started with PID: {process.pid}")
    return process


def wait_for_exit(process: subprocess.Popen, timeout: float) -> WaitResult:
    """
    Waits at most ``timeout`` seconds for a process to exit.

    :return: The exit code, or a timed-out result if it is still running.
    """
    try:
        return WaitResult(exit_code=process.wait(timeout=timeout))
    except subprocess.TimeoutExpired:
        return WaitResult(timed_out=True)


def run_and_wait(
    args: List[str],
    cwd: Optional[Union[str, Path]],
    name: str,
    timeout: float,
    phase_log: Union[logging.Logger, logging.LoggerAdapter] = log,
) -> WaitResult:
    """
    Starts a short-lived command and waits for it within a bound.

    An invocation still running at the deadline is killed so it cannot leak.

    :return: The outcome of the wait.
    """
    process = start_process(args, cwd, name, phase_log)
    result = wait_for_exit(process, timeout)
    if result.timed_out:
        phase_log.error(f"{name} did not exit after {timeout} seconds. Killing it.")
        process.kill()
        process.wait()
    else:
        phase_log.debug(f"{name} exited with code {result.exit_code}")
    return result
