"""
Logging module for the harness.
This module provides the root logger setup and the phase-scoped logger
passed through the deployment steps.
"""

from .setup import setup_logging
from .context import PhaseLogger, phase_logger

__all__ = ["setup_logging", "PhaseLogger", "phase_logger"]
