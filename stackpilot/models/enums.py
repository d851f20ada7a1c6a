"""Enum definitions for stackpilot."""

from enum import Enum


class Mode(Enum):
    """Invocation modes of the runner."""

    DEPLOY = "deploy"
    DELETE = "delete"
    STATUS = "status"
    UPDATE = "update"

    @property
    def needs_manifest(self) -> bool:
        return self in (Mode.DEPLOY, Mode.DELETE)
