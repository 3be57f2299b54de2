import psutil
import logging
from pathlib import Path
from typing import Optional, Union

from nginx_harness.deploy.errors import HandshakeError

log = logging.getLogger(__name__)

START_FAILURE = "Failed to start nginx"


def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)


def _is_zombie(proc: psutil.Process) -> bool:
    try:
        return proc.status() == psutil.STATUS_ZOMBIE
    except psutil.AccessDenied:
        return False


def parse_pid(text: str) -> Optional[int]:
    """Returns the positive integer in a PID file's text, or None if there is none."""
    text = text.strip()
    if not (text.isascii() and text.isdigit()):
        return None
    pid = int(text)
    return pid if pid > 0 else None


def resolve_pid_file(
    pid_file: Path,
    phase_log: Union[logging.Logger, logging.LoggerAdapter] = log,
) -> Optional[psutil.Process]:
    """
    Resolves the PID file nginx wrote into a handle on its master process.

    nginx forks its master away from the invocation that started it, so
    the PID file is the only record of the process worth supervising. Only
    call this after the start invocation exited with code 0.

    :param pid_file: The path given to nginx through the ``pid`` directive.
    :param phase_log: The logger of the calling phase.
    :return: The master process, or None if nginx wrote no PID file.
    :raises HandshakeError: If the file is unreadable, empty or malformed, or if
        it names a process that is not running.
    """
    pid_file = Path(pid_file)
    if not pid_file.exists():
        phase_log.warning(f"Unable to find nginx PID file: {pid_file}")
        return None

    try:
        pid_str = pid_file.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        phase_log.error(f"Unable to read nginx PID file {pid_file}: {e}")
        raise HandshakeError(START_FAILURE) from e
    if not pid_str.strip():
        phase_log.error(f"Empty PID file: {pid_file}")
        raise HandshakeError(START_FAILURE)

    pid = parse_pid(pid_str)
    if pid is None:
        phase_log.error(f"Invalid PID: {pid_str.strip()!r}")
        raise HandshakeError(START_FAILURE)

    try:
        proc = get_process_from_pid(pid)
        if _is_zombie(proc):
            raise psutil.NoSuchProcess(pid)
    except psutil.NoSuchProcess:
        phase_log.error(f"nginx process not running: {pid}")
        raise HandshakeError(START_FAILURE) from None

    phase_log.info(f"nginx process ID {proc.pid} started")
    return proc


def process_has_exited(proc: psutil.Process, timeout: float) -> bool:
    """
    Waits up to ``timeout`` seconds for a process to go away.

    :return: True if the process exited (or is a zombie), False if it is still running.
    """
    try:
        proc.wait(timeout=timeout)
        return True
    except psutil.NoSuchProcess:
        return True
    except psutil.TimeoutExpired:
        pass
    try:
        return _is_zombie(proc)
    except psutil.NoSuchProcess:
        return True
