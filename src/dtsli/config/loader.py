"""
Per-project configuration documents.

- ``dynatrace/dynatrace.conf.yaml``: credential set name and dashboard selection,
  looked up at service, then stage, then project level (first hit wins)
- ``dynatrace/sli.yaml``: custom indicator queries, merged project -> stage ->
  service with later levels overriding earlier ones key by key
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
import yaml

from dtsli.config.credentials import DEFAULT_CREDENTIALS_NAME
from dtsli.context import EvaluationContext, substitute_placeholders
from dtsli.core.errors import ConfigurationError
from dtsli.storage.base import ResourceLevel, ResourceStore

logger = structlog.get_logger()

DYNATRACE_CONF_URI = "dynatrace/dynatrace.conf.yaml"
SLI_CONF_URI = "dynatrace/sli.yaml"
SLO_URI = "slo.yaml"
DASHBOARD_URI = "dynatrace/dashboard.json"

# dashboard values that mean "search by naming convention"
DASHBOARD_QUERY_VALUES = ("", "query")


@dataclass(frozen=True)
class DynatraceConfigFile:
    """Content of dynatrace.conf.yaml."""

    spec_version: str = "0.1.0"
    dt_creds: str = DEFAULT_CREDENTIALS_NAME
    dashboard: str = ""

    @property
    def dashboard_id(self) -> str | None:
        """Explicit dashboard id, or None when dashboards are searched for."""
        if self.dashboard.strip().lower() in DASHBOARD_QUERY_VALUES:
            return None
        return self.dashboard.strip()


def _parse_yaml(content: str, uri: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {uri}: {exc}", {"uri": uri}) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{uri} must contain a mapping", {"uri": uri})
    return data


def load_dynatrace_config(store: ResourceStore, context: EvaluationContext) -> DynatraceConfigFile:
    """Load dynatrace.conf.yaml from the most specific level that has one."""
    for level in (ResourceLevel.SERVICE, ResourceLevel.STAGE, ResourceLevel.PROJECT):
        content = store.read(DYNATRACE_CONF_URI, context, level)
        if content is None:
            continue

        data = _parse_yaml(content, DYNATRACE_CONF_URI)
        dt_creds = str(data.get("dtCreds") or DEFAULT_CREDENTIALS_NAME)
        config = DynatraceConfigFile(
            spec_version=str(data.get("spec_version") or "0.1.0"),
            dt_creds=substitute_placeholders(dt_creds, context),
            dashboard=str(data.get("dashboard") or ""),
        )
        logger.debug("dynatrace_config_loaded", level=level.value, dt_creds=config.dt_creds)
        return config

    logger.debug("dynatrace_config_not_found", uri=DYNATRACE_CONF_URI)
    return DynatraceConfigFile()


def load_custom_queries(store: ResourceStore, context: EvaluationContext) -> dict[str, str]:
    """Merge the ``indicators`` mappings of every sli.yaml level."""
    queries: dict[str, str] = {}
    for level in (ResourceLevel.PROJECT, ResourceLevel.STAGE, ResourceLevel.SERVICE):
        content = store.read(SLI_CONF_URI, context, level)
        if content is None:
            continue

        data = _parse_yaml(content, SLI_CONF_URI)
        indicators = data.get("indicators") or {}
        if not isinstance(indicators, dict):
            raise ConfigurationError(
                f"'indicators' in {SLI_CONF_URI} must be a mapping", {"level": level.value}
            )
        for name, query in indicators.items():
            queries[str(name)] = str(query)
        logger.debug("custom_queries_loaded", level=level.value, count=len(indicators))
    return queries
