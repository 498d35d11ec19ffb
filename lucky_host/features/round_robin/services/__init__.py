"""
Service subpackage for round-robin assignment.
"""

from .selector import HostSelectorService, host_selector

__all__ = ["HostSelectorService", "host_selector"]
