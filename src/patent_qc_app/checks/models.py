"""Report models for formal quality checks."""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, Field

OVERALL_CATEGORY = "总体"


class CheckRunState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    CHECKING = "checking"
    AGGREGATING = "aggregating"
    DONE = "done"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


class Issue(BaseModel):
    description: str = Field(validation_alias=AliasChoices("description", "issue"))
    suggestion: str = ""


class CategoryResult(BaseModel):
    category: str
    issues: list[Issue] = Field(default_factory=list)
    char_count: int | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class CategoryCheckOutcome(BaseModel):
    result: CategoryResult
    cost: float = 0.0


class Report(BaseModel):
    """Per-category results in request order, followed by the overall category."""

    results: list[CategoryResult] = Field(default_factory=list)
    total_cost: float = 0.0
    state: CheckRunState = CheckRunState.DONE

    @property
    def overall(self) -> CategoryResult | None:
        for result in self.results:
            if result.category == OVERALL_CATEGORY:
                return result
        return None

    @property
    def errors(self) -> dict[str, str]:
        return {result.category: result.error for result in self.results if result.error is not None}

    def issue_count(self) -> int:
        return sum(len(result.issues) for result in self.results)
