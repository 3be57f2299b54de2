import logging
import requests
import threading
from typing import Optional, Union

from nginx_harness.local.config import effective_settings as config
from nginx_harness.deploy.errors import BackendExitedError, ReadinessError
from nginx_harness.deploy.retry import RetryPolicy, retry_request

log = logging.getLogger(__name__)

DEPLOY_FAILURE = "Deploy failed"


def wait_for_backend(
    address: str,
    exit_event: threading.Event,
    policy: Optional[RetryPolicy] = None,
    phase_log: Union[logging.Logger, logging.LoggerAdapter] = log,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """
    Waits until the backend answers a plain GET on its own address.

    The backend is addressed directly, not through nginx: while the backend
    starts, nginx answers 502 Bad Gateway, which looks the same as a broken
    proxy config. Going direct tells "not up yet" (retry) apart from
    "crashed" (``exit_event`` set, abort).

    :param address: The backend's own URI.
    :param exit_event: The backend's exit signal.
    :param policy: Retry policy; defaults to the configured one.
    :param phase_log: The logger of the calling phase.
    :param session: Optional requests session to issue the GETs with.
    :return: The successful response.
    :raises ReadinessError: If the backend never answered with a 2xx, or exited.
    """
    http = session or requests.Session()
    timeout = config.READINESS_REQUEST_TIMEOUT
    phase_log.info(f"Waiting for backend at {address}...")
    try:
        response = retry_request(
            lambda: http.get(address, timeout=timeout),
            exit_event,
            policy,
            phase_log,
        )
    except BackendExitedError as e:
        phase_log.error(f"Backend exited before becoming ready: {e}")
        raise ReadinessError(DEPLOY_FAILURE) from e
    finally:
        if session is None:
            http.close()

    if response is None or not response.ok:
        status = response.status_code if response is not None else "no response"
        phase_log.error(f"Backend at {address} did not become ready ({status})")
        raise ReadinessError(DEPLOY_FAILURE)

    phase_log.info(f"Backend at {address} is up ({response.status_code})")
    return response
