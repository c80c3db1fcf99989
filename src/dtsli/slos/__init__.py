"""
SLI results and generated SLO/SLI documents.

Provides:
- SLIResult and the slo.yaml / sli.yaml models
- Parsers for the SLO descriptor language used in dashboard titles
"""

from dtsli.slos.models import (
    Comparison,
    CompareWith,
    SLIConfig,
    SLIResult,
    SLOCriteria,
    SLODefinition,
    SLODescriptor,
    ServiceLevelObjectives,
    TotalScore,
)
from dtsli.slos.parser import (
    clean_indicator_name,
    has_markdown_configuration,
    parse_markdown_configuration,
    parse_slo_descriptor,
)

__all__ = [
    "Comparison",
    "CompareWith",
    "SLIConfig",
    "SLIResult",
    "SLOCriteria",
    "SLODefinition",
    "SLODescriptor",
    "ServiceLevelObjectives",
    "TotalScore",
    "clean_indicator_name",
    "has_markdown_configuration",
    "parse_markdown_configuration",
    "parse_slo_descriptor",
]
