"""
``dtsli get-sli``: compute indicator values for one service and time window.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

import structlog

from dtsli.cli import ux
from dtsli.config.settings import get_settings
from dtsli.context import EvaluationContext, SLIFilter
from dtsli.core.errors import ConfigurationError, ExitCode, main_with_error_handling
from dtsli.emitters import HTTPEventEmitter, JSONFileEmitter, ResultEmitter, SLIBatch
from dtsli.retrieval import GetSLIRequest, SLIRetriever
from dtsli.storage.local import FileResourceStore

logger = structlog.get_logger()


def parse_key_values(items: Sequence[str] | None, option: str) -> dict[str, str]:
    """Parse repeated ``key=value`` options."""
    parsed: dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"{option} expects key=value, got '{item}'", {"option": option})
        parsed[key.strip()] = value.strip()
    return parsed


def split_indicators(items: Sequence[str] | None) -> tuple[str, ...]:
    """Accept both repeated ``--indicator`` and comma-separated lists."""
    names: list[str] = []
    for item in items or []:
        names.extend(name.strip() for name in item.split(",") if name.strip())
    return tuple(names)


@main_with_error_handling()
def get_sli_command(
    project: str,
    stage: str,
    service: str,
    start: str,
    end: str,
    indicators: Sequence[str] | None = None,
    labels: Sequence[str] | None = None,
    filters: Sequence[str] | None = None,
    deployment: str = "",
    test_strategy: str = "",
    keptn_context: str = "",
    resource_dir: str | None = None,
    output: str | None = None,
    event_endpoint: str | None = None,
    skip_dashboard: bool = False,
) -> int:
    """Run one retrieval and print the results. Returns an exit code."""
    settings = get_settings()
    if skip_dashboard:
        settings = settings.model_copy(update={"fetch_slo_sli_from_dashboard": False})

    context = EvaluationContext(
        project=project,
        stage=stage,
        service=service,
        deployment=deployment,
        test_strategy=test_strategy,
        labels=parse_key_values(labels, "--label"),
        keptn_context=keptn_context,
    )
    request = GetSLIRequest(
        context=context,
        start=start,
        end=end,
        indicators=split_indicators(indicators),
        filters=tuple(
            SLIFilter(key=k, value=v) for k, v in parse_key_values(filters, "--filter").items()
        ),
    )

    emitter: ResultEmitter
    if event_endpoint:
        emitter = HTTPEventEmitter(event_endpoint)
    else:
        emitter = JSONFileEmitter(output) if output else _NullEmitter()

    store = FileResourceStore(resource_dir or settings.resource_dir)
    retriever = SLIRetriever(store, emitter, settings=settings)

    ux.header(project, stage, service)
    batch = asyncio.run(retriever.retrieve(request))

    ux.print_labels(batch.labels)
    ux.print_results(batch.results)

    failed = [r for r in batch.results if not r.success]
    if failed:
        ux.warning(f"{len(failed)} of {len(batch.results)} indicators failed")
        return ExitCode.WARNING
    ux.success(f"{len(batch.results)} indicators retrieved")
    return ExitCode.SUCCESS


class _NullEmitter(ResultEmitter):
    """Used when results are only printed."""

    async def emit(self, batch: SLIBatch) -> None:
        logger.debug("result_not_emitted", indicators=len(batch.results))
