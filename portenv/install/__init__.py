"""
Install strategy dispatch.
"""

from .dispatcher import InstallDispatcher, InstallOutcome

__all__ = ["InstallDispatcher", "InstallOutcome"]
