"""
Service lifecycle management.
"""

from lifecycle.manager import LifecycleManager, LifecycleState, StartupError

__all__ = ["LifecycleManager", "LifecycleState", "StartupError"]
