from __future__ import annotations

from pathlib import Path

import structlog

from dtsli.context import EvaluationContext
from dtsli.core.errors import ConfigurationError
from dtsli.storage.base import ResourceLevel, ResourceStore, scope_parts

logger = structlog.get_logger()


class FileResourceStore(ResourceStore):
    """
    Resources in a directory tree.

    Layout: ``<root>/<project>/[<stage>/[<service>/]]<uri>``
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, uri: str, context: EvaluationContext, level: ResourceLevel) -> Path:
        return self._root.joinpath(*scope_parts(context, level), uri)

    def read(
        self,
        uri: str,
        context: EvaluationContext,
        level: ResourceLevel = ResourceLevel.SERVICE,
    ) -> str | None:
        path = self.path_for(uri, context, level)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"could not read {path}: {exc}", {"path": str(path)}) from exc

    def write(
        self,
        content: str,
        uri: str,
        context: EvaluationContext,
        level: ResourceLevel = ResourceLevel.SERVICE,
    ) -> None:
        path = self.path_for(uri, context, level)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.debug("resource_written", path=str(path), bytes=len(content))
