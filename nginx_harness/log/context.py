import logging
from typing import Any, MutableMapping, Tuple


class PhaseLogger(logging.LoggerAdapter):
    """
    A logger carrying the name of the deployment phase it logs for.

    The deployer creates one per phase ("Deploy", "Dispose") and hands it
    down explicitly to each component, which may open a nested phase with
    :meth:`child`. Every record gets a ``phase`` attribute and a
    ``[phase]`` message prefix.
    """

    def __init__(self, logger: logging.Logger, phase: str) -> None:
        super().__init__(logger, {"phase": phase})
        self.phase = phase

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("phase", self.phase)
        kwargs["extra"] = extra
        return f"[{self.phase}] {msg}", kwargs

    def child(self, name: str) -> "PhaseLogger":
        """Returns a logger for a sub-phase, e.g. 'Deploy/SetupNginx'."""
        return PhaseLogger(self.logger, f"{self.phase}/{name}")


def phase_logger(name: str, phase: str) -> PhaseLogger:
    """Shortcut for ``PhaseLogger(logging.getLogger(name), phase)``."""
    return PhaseLogger(logging.getLogger(name), phase)
