import logging
import requests
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Union

from nginx_harness.local.config import effective_settings as config
from nginx_harness.deploy.errors import BackendExitedError

log = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    max_attempts: int = 12
    base_backoff_sec: float = 0.5
    backoff_multiplier: float = 1.5
    max_backoff_sec: float = 5.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=config.RETRY_MAX_ATTEMPTS,
            base_backoff_sec=config.RETRY_BASE_BACKOFF,
            backoff_multiplier=config.RETRY_BACKOFF_MULTIPLIER,
            max_backoff_sec=config.RETRY_MAX_BACKOFF,
        )


def retry_request(
    request_factory: Callable[[], requests.Response],
    exit_event: threading.Event,
    policy: Optional[RetryPolicy] = None,
    phase_log: Union[logging.Logger, logging.LoggerAdapter] = log,
) -> Optional[requests.Response]:
    """
    Issues a request until it succeeds or the attempt budget is spent.

    Connection errors and non-2xx responses are retried with exponential
    backoff. The backoff waits on ``exit_event``, so a backend that exits
    ends the loop at once instead of being polled until the budget is spent.

    :param request_factory: Performs one attempt and returns its response.
    :param exit_event: Set by the backend launcher when the backend exits.
    :param policy: Attempt count and backoff; defaults to the configured policy.
    :param phase_log: The logger of the calling phase.
    :return: The first successful response, else the last response (or None
        if no attempt got a response at all).
    :raises BackendExitedError: If ``exit_event`` is set before success.
    """
    policy = policy or RetryPolicy.from_settings()
    delay = policy.base_backoff_sec
    last_response: Optional[requests.Response] = None

    for attempt in range(1, policy.max_attempts + 1):
        if exit_event.is_set():
            raise BackendExitedError("Backend exited while waiting for a response")

        try:
            response = request_factory()
            last_response = response
            if response.ok:
                return response
            phase_log.warning(
                f"Request failed with status {response.status_code} "
                f"(attempt {attempt}/{policy.max_attempts})"
            )
        except requests.exceptions.RequestException as e:
            phase_log.debug(f"Request failed (attempt {attempt}/{policy.max_attempts}): {e}")

        if attempt < policy.max_attempts:
            if exit_event.wait(delay):
                raise BackendExitedError("Backend exited while waiting for a response")
            delay = min(delay * policy.backoff_multiplier, policy.max_backoff_sec)

    phase_log.error(f"Request did not succeed after {policy.max_attempts} attempts")
    return last_response
