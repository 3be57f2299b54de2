"""
Local package for the nginx harness.

This package provides the merged runtime configuration through the
`effective_settings` singleton.
"""

from .config import effective_settings, MergedSettings

__all__ = ["effective_settings", "MergedSettings"]
