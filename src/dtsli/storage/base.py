"""Resource store interface for per-project configuration documents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from dtsli.context import EvaluationContext


class ResourceLevel(str, Enum):
    """Scope a resource is stored under."""

    PROJECT = "project"
    STAGE = "stage"
    SERVICE = "service"


def scope_parts(context: EvaluationContext, level: ResourceLevel) -> tuple[str, ...]:
    """Path components for ``level``: project, then stage, then service."""
    if level is ResourceLevel.PROJECT:
        return (context.project,)
    if level is ResourceLevel.STAGE:
        return (context.project, context.stage)
    return (context.project, context.stage, context.service)


class ResourceStore(ABC):
    """Reads and writes text resources scoped to project/stage/service."""

    @abstractmethod
    def read(
        self,
        uri: str,
        context: EvaluationContext,
        level: ResourceLevel = ResourceLevel.SERVICE,
    ) -> str | None:
        """Return the resource content, or None if it does not exist."""

    @abstractmethod
    def write(
        self,
        content: str,
        uri: str,
        context: EvaluationContext,
        level: ResourceLevel = ResourceLevel.SERVICE,
    ) -> None:
        """Store ``content`` at ``uri``."""
