from .discovery import discover
from .staging import classify
from .types import DiscoveryError, Role, Task

__all__ = ["discover", "classify", "DiscoveryError", "Role", "Task"]
