from __future__ import annotations

from dtsli.context import EvaluationContext
from dtsli.storage.base import ResourceLevel, ResourceStore, scope_parts


class InMemoryResourceStore(ResourceStore):
    """Dictionary-backed store for local development and tests."""

    def __init__(self) -> None:
        self._resources: dict[tuple[str, ...], str] = {}

    def read(
        self,
        uri: str,
        context: EvaluationContext,
        level: ResourceLevel = ResourceLevel.SERVICE,
    ) -> str | None:
        return self._resources.get((*scope_parts(context, level), uri))

    def write(
        self,
        content: str,
        uri: str,
        context: EvaluationContext,
        level: ResourceLevel = ResourceLevel.SERVICE,
    ) -> None:
        self._resources[(*scope_parts(context, level), uri)] = content
