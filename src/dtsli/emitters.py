"""
Result emitters.

An emitter publishes exactly one finished batch per invocation. Emitting
never raises on I/O or transport failures; those are logged.
"""

from __future__ import annotations

import json
import sys
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
import structlog

from dtsli.context import EvaluationContext
from dtsli.slos.models import SLIResult

logger = structlog.get_logger()

EVENT_TYPE = "sh.keptn.event.get-sli.finished"
EVENT_SOURCE = "dynatrace-sli-service"


@dataclass
class SLIBatch:
    """The finished result set of one invocation."""

    context: EvaluationContext
    start: str
    end: str
    results: list[SLIResult] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    def to_event(self) -> dict[str, Any]:
        """CloudEvents envelope carrying the indicator values."""
        ctx = self.context
        return {
            "specversion": "1.0",
            "id": str(uuid.uuid4()),
            "time": datetime.now(timezone.utc).isoformat(),
            "type": EVENT_TYPE,
            "source": EVENT_SOURCE,
            "datacontenttype": "application/json",
            "shkeptncontext": ctx.keptn_context,
            "data": {
                "project": ctx.project,
                "stage": ctx.stage,
                "service": ctx.service,
                "deployment": ctx.deployment,
                "teststrategy": ctx.test_strategy,
                "deploymentstrategy": ctx.deployment_strategy,
                "labels": dict(self.labels),
                "start": self.start,
                "end": self.end,
                "indicatorValues": [r.to_dict() for r in self.results],
            },
        }


class ResultEmitter(ABC):
    """Publishes a finished batch."""

    @abstractmethod
    async def emit(self, batch: SLIBatch) -> None:
        """Publish ``batch``; failures are logged, not raised."""


class JSONFileEmitter(ResultEmitter):
    """Write the event as JSON to a file, or to stdout when no path is given."""

    def __init__(self, path: str | Path | None = None, indent: int = 2) -> None:
        self.path = Path(path) if path else None
        self.indent = indent

    async def emit(self, batch: SLIBatch) -> None:
        payload = json.dumps(batch.to_event(), indent=self.indent)
        if self.path is None:
            sys.stdout.write(payload + "\n")
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(payload + "\n", encoding="utf-8")
        except OSError as exc:
            logger.error("result_emit_failed", emitter="file", path=str(self.path), error=str(exc))
            return
        logger.info("result_emitted", emitter="file", path=str(self.path), indicators=len(batch.results))


class HTTPEventEmitter(ResultEmitter):
    """POST the event to an event broker."""

    def __init__(self, endpoint: str, timeout: float = 10.0) -> None:
        if "://" not in endpoint:
            endpoint = f"http://{endpoint}"
        self.endpoint = endpoint
        self.timeout = timeout

    async def emit(self, batch: SLIBatch) -> None:
        event = batch.to_event()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.endpoint,
                    json=event,
                    headers={"Content-Type": "application/cloudevents+json"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("result_emit_failed", emitter="http", endpoint=self.endpoint, error=str(exc))
            return

        logger.info(
            "result_emitted",
            emitter="http",
            endpoint=self.endpoint,
            event_id=event["id"],
            indicators=len(batch.results),
        )
