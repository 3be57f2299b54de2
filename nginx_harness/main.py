import sys
import logging
import setproctitle
from pathlib import Path
from typing import List, Optional

from nginx_harness.local.config import effective_settings as config
from nginx_harness.log.setup import setup_logging
from nginx_harness.deploy import (
    CommandBackendLauncher, DeploymentError, DeploymentParameters, NginxDeployer,
)

log = logging.getLogger("console")

USAGE = (
    "usage: python -m nginx_harness <template> <application-path> "
    "[--base-uri URI] [--verbose] -- <backend command...>\n"
    "  '{url}' in the backend command is replaced with the address it must listen on."
)


def parse_args(argv: List[str]) -> Optional[dict]:
    """
    Splits the command line into harness options and the backend command.

    :return: The parsed options, or None if the command line is invalid.
    """
    if "--" not in argv:
        return None
    split = argv.index("--")
    own_args, backend_cmd = argv[:split], argv[split + 1:]

    options = {"verbose": False, "base_uri": None, "backend_cmd": backend_cmd}
    if "--verbose" in own_args:
        options["verbose"] = True
        own_args.remove("--verbose")
    if "--base-uri" in own_args:
        idx = own_args.index("--base-uri")
        if idx + 1 >= len(own_args):
            return None
        options["base_uri"] = own_args[idx + 1]
        del own_args[idx:idx + 2]

    if len(own_args) != 2 or not backend_cmd:
        return None
    options["template"], options["application_path"] = Path(own_args[0]), Path(own_args[1])
    return options


def main(argv: Optional[List[str]] = None) -> int:
    """The console entry point: deploy, hold until interrupted, dispose."""
    setproctitle.setproctitle("nginx-harness")
    options = parse_args(list(sys.argv[1:] if argv is None else argv))
    if options is None:
        print(USAGE, file=sys.stderr)
        return 2

    verbose = options["verbose"] or config.VERBOSE_LOGGING
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    parameters = DeploymentParameters(
        application_path=options["application_path"],
        server_config_template_content=options["template"].read_text(encoding="utf-8"),
        application_base_uri_hint=options["base_uri"],
    )
    backend = CommandBackendLauncher(options["backend_cmd"], cwd=options["application_path"])

    try:
        with NginxDeployer(parameters, backend) as deployer:
            result = deployer.deploy()
            print(f"Serving through nginx at {result.application_base_uri} (Ctrl+C to stop)")
            try:
                while not result.host_shutdown_event.wait(1):
                    pass
                log.warning("Backend exited. Tearing down nginx.")
            except KeyboardInterrupt:
                log.info("Interrupted by user. Tearing down nginx.")
    except DeploymentError as e:
        log.critical(f"Deployment failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
