"""Per-invocation event context and query placeholder substitution.

Supported placeholders:
- $CONTEXT, $EVENT, $SOURCE
- $PROJECT, $STAGE, $SERVICE, $DEPLOYMENT, $TESTSTRATEGY
- $LABEL.<key>  - value of event label <key>
- $ENV.<name>   - value of environment variable <name>

Caller-supplied custom filters ($<key> / $<KEY>) are applied first.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Sequence
from urllib.parse import quote_plus


@dataclass(frozen=True)
class SLIFilter:
    """A key/value filter sent along with a get-sli request."""

    key: str
    value: str


@dataclass(frozen=True)
class EvaluationContext:
    """Immutable description of the service being evaluated."""

    project: str
    stage: str
    service: str
    deployment: str = ""
    test_strategy: str = ""
    deployment_strategy: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    keptn_context: str = ""
    event: str = ""
    source: str = ""


def _verbatim(value: str) -> str:
    return value


def apply_custom_filters(query: str, filters: Sequence[SLIFilter]) -> str:
    """Replace $key and $KEY with the filter value (quotes stripped)."""
    for item in filters:
        value = item.value.replace("'", "").replace('"', "")
        query = query.replace(f"${item.key}", value)
        query = query.replace(f"${item.key.upper()}", value)
    return query


def substitute_placeholders(
    template: str,
    context: EvaluationContext,
    environ: Mapping[str, str] | None = None,
    *,
    escape: bool = True,
) -> str:
    """
    Replace keptn placeholders with context values.

    Values are URL-query-escaped for templates spliced into a query string.
    Pass ``escape=False`` for text the HTTP client encodes itself, such as a
    USQL query sent as a request parameter. Unknown placeholders are left as
    they are.

    Example:
        >>> ctx = EvaluationContext(project="sockshop", stage="dev", service="carts")
        >>> substitute_placeholders("tag(keptn_service:$SERVICE)", ctx, environ={})
        'tag(keptn_service:carts)'
    """
    encode = quote_plus if escape else _verbatim
    result = template
    replacements = [
        ("$CONTEXT", context.keptn_context),
        ("$EVENT", context.event),
        ("$SOURCE", context.source),
        ("$PROJECT", context.project),
        ("$STAGE", context.stage),
        ("$SERVICE", context.service),
        ("$DEPLOYMENT", context.deployment),
        ("$TESTSTRATEGY", context.test_strategy),
    ]
    for placeholder, value in replacements:
        result = result.replace(placeholder, encode(value or ""))

    for key, value in context.labels.items():
        result = result.replace(f"$LABEL.{key}", encode(value))

    env = os.environ if environ is None else environ
    if "$ENV." in result:
        for name, value in env.items():
            result = result.replace(f"$ENV.{name}", encode(value))

    return result
