"""
SLI result and SLO document models.

Serialized forms follow the keptn ``slo.yaml`` / ``sli.yaml`` layouts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

SPEC_VERSION = "1.0"


@dataclass
class SLIResult:
    """Outcome for one named indicator."""

    metric: str
    value: float = 0.0
    success: bool = True
    message: str = ""

    @classmethod
    def ok(cls, metric: str, value: float) -> SLIResult:
        return cls(metric=metric, value=value, success=True, message="")

    @classmethod
    def failed(cls, metric: str, message: str) -> SLIResult:
        return cls(metric=metric, value=0.0, success=False, message=message or "unknown error")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "metric": self.metric,
            "value": self.value,
            "success": self.success,
        }
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class SLOCriteria:
    """One group of threshold expressions, e.g. ["<500", "<+10%"]."""

    criteria: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"criteria": list(self.criteria)}


@dataclass
class SLODescriptor:
    """Parsed form of ``Title;sli=name;pass=..;warning=..;weight=2;key=true``."""

    sli: str = ""
    pass_criteria: list[SLOCriteria] | None = None
    warning_criteria: list[SLOCriteria] | None = None
    weight: int = 1
    key_sli: bool = False


@dataclass
class SLODefinition:
    """An objective entry of slo.yaml."""

    sli: str
    weight: int = 1
    key_sli: bool = False
    pass_criteria: list[SLOCriteria] | None = None
    warning_criteria: list[SLOCriteria] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"sli": self.sli}
        # Absent criteria must stay absent: keptn treats an empty list as "always pass"
        if self.pass_criteria:
            data["pass"] = [c.to_dict() for c in self.pass_criteria]
        if self.warning_criteria:
            data["warning"] = [c.to_dict() for c in self.warning_criteria]
        data["weight"] = self.weight
        data["key_sli"] = self.key_sli
        return data


class CompareWith(str, Enum):
    SINGLE_RESULT = "single_result"
    SEVERAL_RESULTS = "several_results"


@dataclass
class Comparison:
    """How the evaluation compares against previous results."""

    compare_with: CompareWith = CompareWith.SINGLE_RESULT
    include_result_with_score: str = "pass"
    number_of_comparison_results: int = 1
    aggregate_function: str = "avg"

    def to_dict(self) -> dict[str, Any]:
        return {
            "compare_with": self.compare_with.value,
            "include_result_with_score": self.include_result_with_score,
            "number_of_comparison_results": self.number_of_comparison_results,
            "aggregate_function": self.aggregate_function,
        }


@dataclass
class TotalScore:
    passing: str = "90%"
    warning: str = "75%"

    def to_dict(self) -> dict[str, Any]:
        return {"pass": self.passing, "warning": self.warning}


@dataclass
class ServiceLevelObjectives:
    """Generated slo.yaml content."""

    objectives: list[SLODefinition] = field(default_factory=list)
    total_score: TotalScore = field(default_factory=TotalScore)
    comparison: Comparison = field(default_factory=Comparison)
    filter: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "spec_version": SPEC_VERSION,
            "filter": dict(self.filter),
            "comparison": self.comparison.to_dict(),
            "objectives": [o.to_dict() for o in self.objectives],
            "total_score": self.total_score.to_dict(),
        }


@dataclass
class SLIConfig:
    """Generated sli.yaml content: indicator name -> query."""

    indicators: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"spec_version": SPEC_VERSION, "indicators": dict(self.indicators)}
