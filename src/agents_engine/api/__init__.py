"""
HTTP API for the workflow engine.
"""

from .manager import RunManager
from .routes import router, set_dependencies

__all__ = ["RunManager", "router", "set_dependencies"]
