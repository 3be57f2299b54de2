import os
import uuid
import logging
import tempfile
from pathlib import Path
from typing import Dict, Union

from nginx_harness.local.config import effective_settings as config
from nginx_harness.deploy.models import RenderedConfig, TemplateValues
from nginx_harness.deploy.uri import get_port

log = logging.getLogger(__name__)

PLACEHOLDERS: Dict[str, str] = {
    "[user]": "user",
    "[errorlog]": "error_log_path",
    "[accesslog]": "access_log_path",
    "[listenPort]": "listen_port",
    "[redirectUri]": "redirect_uri",
    "[pidFile]": "pid_file_path",
}


def render_template(template: str, values: TemplateValues) -> str:
    """
    Replaces the known placeholders of an nginx.conf template.

    This is plain substring replacement: nothing is escaped or validated,
    and unknown ``[tokens]`` are left as they are.

    :param template: The raw template text.
    :param values: The values to substitute.
    :return: The rendered configuration text.
    """
    rendered = template
    for token, field in PLACEHOLDERS.items():
        rendered = rendered.replace(token, str(getattr(values, field)))
    return rendered


def build_template_values(
    application_path: Union[str, Path],
    listen_uri: str,
    redirect_uri: str,
    user: str,
) -> TemplateValues:
    """
    Computes the template inputs for one deployment.

    The PID file gets a fresh uuid-based name inside the application
    directory so concurrent deployments never share one.

    :param application_path: Directory holding the PID file and nginx logs.
    :param listen_uri: The public URI; nginx listens on its port.
    :param redirect_uri: The backend address nginx proxies to.
    :param user: The user nginx worker processes run as.
    """
    app_path = Path(application_path)
    return TemplateValues(
        user=user,
        error_log_path=str(app_path / config.NGINX_ERROR_LOG_NAME),
        access_log_path=str(app_path / config.NGINX_ACCESS_LOG_NAME),
        listen_port=get_port(listen_uri),
        redirect_uri=redirect_uri,
        pid_file_path=str(app_path / f"{uuid.uuid4()}{config.NGINX_PID_FILE_SUFFIX}"),
    )


def write_config_file(content: str) -> Path:
    """Writes the rendered config to a fresh temp file and returns its path."""
    fd, path = tempfile.mkstemp(prefix="nginx-harness-", suffix=".nginx.conf")
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    return Path(path)


def render_config(template: str, values: TemplateValues, phase_log: logging.LoggerAdapter) -> RenderedConfig:
    """
    Renders the template and persists it to a temp file.

    :param template: The raw template text.
    :param values: The values to substitute.
    :param phase_log: The phase logger of the calling deployment.
    :return: The rendered config and the path it was written to.
    """
    content = render_template(template, values)
    phase_log.debug(f"Using PID file: {values.pid_file_path}")
    phase_log.debug(f"Using Error Log file: {values.error_log_path}")
    phase_log.debug(f"Using Access Log file: {values.access_log_path}")
    if config.LOG_CONFIG_CONTENT:
        phase_log.debug(f"Config File Content:\n===START CONFIG===\n{content}\n===END CONFIG===")

    path = write_config_file(content)
    phase_log.debug(f"Wrote nginx config to {path}")
    return RenderedConfig(
        content=content,
        path=path,
        pid_file=Path(values.pid_file_path),
        error_log=Path(values.error_log_path),
        access_log=Path(values.access_log_path),
    )
