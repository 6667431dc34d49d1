"""
Shared configuration and pure utilities.
"""

from .config import Settings, get_settings, local_now, to_local

__all__ = ["Settings", "get_settings", "local_now", "to_local"]
