"""Stack deployers: the per-stack contract and its backend protocol."""

from .backend import StackBackend, load_backend  # noqa: F401
from .base import DeployManager  # noqa: F401

__all__ = ["DeployManager", "StackBackend", "load_backend"]
