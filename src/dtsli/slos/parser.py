"""
Parsers for the SLO mini-language embedded in dashboard titles.

Tile titles look like::

    Response time (P95);sli=svc_rt_p95;pass=<+10%,<600;warning=<800;weight=2;key=true

Markdown tiles carry global settings::

    KQG.Total.Pass=90%;KQG.Total.Warning=75%;KQG.Compare.Results=3
"""

from __future__ import annotations

from dtsli.slos.models import (
    CompareWith,
    SLOCriteria,
    SLODescriptor,
    ServiceLevelObjectives,
)

VALID_SCORE_INCLUSIONS = ("pass", "pass_or_warn", "all")
VALID_AGGREGATE_FUNCTIONS = ("avg", "p50", "p90", "p95")


def parse_slo_descriptor(
    text: str,
    default_pass: list[str] | None = None,
    default_warning: list[str] | None = None,
) -> SLODescriptor:
    """
    Parse a semicolon-separated descriptor into an SLODescriptor.

    Every ``pass=``/``warning=`` segment adds one criteria group. Segments
    without ``=`` are ignored. Defaults only apply when no segment was given;
    an empty default yields ``None`` rather than an empty list.
    """
    descriptor = SLODescriptor()
    passing: list[SLOCriteria] = []
    warning: list[SLOCriteria] = []

    for segment in (text or "").split(";"):
        name, sep, value = segment.partition("=")
        if not sep:
            continue
        if name == "sli":
            descriptor.sli = value
        elif name == "pass":
            passing.append(SLOCriteria(criteria=value.split(",")))
        elif name == "warning":
            warning.append(SLOCriteria(criteria=value.split(",")))
        elif name == "weight":
            try:
                descriptor.weight = int(value)
            except ValueError:
                descriptor.weight = 1
        elif name == "key":
            descriptor.key_sli = _parse_bool(value)

    if not passing and default_pass:
        passing.append(SLOCriteria(criteria=list(default_pass)))
    if not warning and default_warning:
        warning.append(SLOCriteria(criteria=list(default_warning)))

    descriptor.pass_criteria = passing or None
    descriptor.warning_criteria = warning or None
    return descriptor


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "t", "true")


def has_markdown_configuration(markdown: str) -> bool:
    return "kqg." in (markdown or "").lower()


def parse_markdown_configuration(markdown: str, slo: ServiceLevelObjectives) -> None:
    """Apply ``KQG.*`` directives from a markdown tile onto ``slo`` in place."""
    for segment in (markdown or "").split(";"):
        parts = segment.split("=")
        if len(parts) != 2:
            continue
        name = parts[0].strip().lower()
        value = parts[1].strip()

        if name == "kqg.total.pass":
            slo.total_score.passing = value
        elif name == "kqg.total.warning":
            slo.total_score.warning = value
        elif name == "kqg.compare.withscore":
            slo.comparison.include_result_with_score = (
                value if value in VALID_SCORE_INCLUSIONS else "pass"
            )
        elif name == "kqg.compare.results":
            try:
                results = int(value)
            except ValueError:
                results = 1
            slo.comparison.number_of_comparison_results = results
            slo.comparison.compare_with = (
                CompareWith.SEVERAL_RESULTS if results > 1 else CompareWith.SINGLE_RESULT
            )
        elif name == "kqg.compare.function":
            slo.comparison.aggregate_function = (
                value if value in VALID_AGGREGATE_FUNCTIONS else "avg"
            )


def clean_indicator_name(name: str) -> str:
    """Make an indicator name safe for keptn: space, / and % become _."""
    for char in (" ", "/", "%"):
        name = name.replace(char, "_")
    return name
