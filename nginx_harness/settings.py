"""
This module contains the configuration settings for the nginx test harness.
It defines the nginx binary location, process wait bounds, readiness probe
policy and logging options used across the deployer.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't')


#* --- Core Paths ---
BASE_DIR = pathlib.Path(os.getenv("NGINX_HARNESS_HOME", pathlib.Path.cwd())).resolve()
OVERRIDES_JSON_PATH = BASE_DIR / "nginx_harness.overrides.json"

#* --- External Executable Paths ---
NGINX_EXECUTABLE_PATH = pathlib.Path(os.getenv("NGINX_EXECUTABLE_PATH", "nginx"))

#* --- Nginx Process Settings ---
NGINX_WAIT_TIMEOUT = float(os.getenv("NGINX_WAIT_TIMEOUT", "30"))  # seconds, start and stop
NGINX_USER = os.getenv("NGINX_USER", os.getenv("LOGNAME", ""))
NGINX_PID_FILE_SUFFIX = ".nginx.pid"
NGINX_ERROR_LOG_NAME = "nginx.error.log"
NGINX_ACCESS_LOG_NAME = "nginx.access.log"

#* --- Backend Settings ---
BACKEND_HOST = os.getenv("BACKEND_HOST", "localhost")
BACKEND_URLS_ENV_VAR = "BACKEND_URLS"
BACKEND_STOP_TIMEOUT = float(os.getenv("BACKEND_STOP_TIMEOUT", "10"))  # seconds before force-killing

#* --- Readiness Probe Settings ---
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "12"))
RETRY_BASE_BACKOFF = float(os.getenv("RETRY_BASE_BACKOFF", "0.5"))
RETRY_BACKOFF_MULTIPLIER = float(os.getenv("RETRY_BACKOFF_MULTIPLIER", "1.5"))
RETRY_MAX_BACKOFF = float(os.getenv("RETRY_MAX_BACKOFF", "5"))
READINESS_REQUEST_TIMEOUT = float(os.getenv("READINESS_REQUEST_TIMEOUT", "2"))

#* --- Logging ---
LOG_FILE_PATH = os.getenv("NGINX_HARNESS_LOG_FILE", "")
LOG_CONFIG_CONTENT = _env_flag("LOG_CONFIG_CONTENT", "False")
VERBOSE_LOGGING = _env_flag("VERBOSE_LOGGING", "False")

#* --- MODIFIABLE SETTINGS (Changeable through the overrides file) ---
MODIFIABLE_SETTINGS = {
    "NGINX_WAIT_TIMEOUT", "NGINX_USER", "BACKEND_STOP_TIMEOUT",
    "RETRY_MAX_ATTEMPTS", "RETRY_BASE_BACKOFF", "RETRY_BACKOFF_MULTIPLIER",
    "RETRY_MAX_BACKOFF", "READINESS_REQUEST_TIMEOUT",
    "LOG_CONFIG_CONTENT", "VERBOSE_LOGGING",
}
