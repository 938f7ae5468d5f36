"""Concurrent checking of every category with independent settlement."""

from __future__ import annotations

import asyncio
from typing import Callable

from patent_qc_app.checks.category_checker import CategoryChecker
from patent_qc_app.checks.models import (
    OVERALL_CATEGORY,
    CategoryCheckOutcome,
    CategoryResult,
    CheckRunState,
    Issue,
    Report,
)
from patent_qc_app.checks.rules import OVERALL_KEYWORDS, CheckCategory
from patent_qc_app.config.logging import get_logger
from patent_qc_app.extraction.models import ProgressCallback
from patent_qc_app.extraction.sections import SectionMap
from patent_qc_app.llm.errors import InvalidCredentialError, MalformedResponseError

LOGGER = get_logger(__name__)


def is_overall_issue(issue: Issue) -> bool:
    return any(keyword in issue.description for keyword in OVERALL_KEYWORDS)


def dedupe_issues(issues: list[Issue]) -> list[Issue]:
    unique: dict[str, Issue] = {}
    for issue in issues:
        unique.setdefault(issue.description, issue)
    return list(unique.values())


class ParallelAggregator:
    """Fan a checker out over categories and merge the settled outcomes."""

    def __init__(self, checker: CategoryChecker) -> None:
        self.checker = checker

    async def run_all(
        self,
        sections: SectionMap,
        categories: list[CheckCategory],
        on_progress: ProgressCallback | None = None,
        *,
        on_aggregate: Callable[[], None] | None = None,
    ) -> Report:
        progress = on_progress or (lambda message: None)
        progress(f"Checking {len(categories)} categories in parallel")

        outcomes = await asyncio.gather(
            *(self._check_one(category, sections) for category in categories),
            return_exceptions=True,
        )

        # A rejected credential aborts the whole run.
        for outcome in outcomes:
            if isinstance(outcome, InvalidCredentialError):
                raise outcome
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome

        if on_aggregate:
            on_aggregate()
        progress("Aggregating category results")
        return self.aggregate(categories, outcomes)

    async def _check_one(self, category: CheckCategory, sections: SectionMap) -> CategoryCheckOutcome:
        cross_reference = sections.get(category.cross_reference) if category.cross_reference else None
        return await self.checker.check(category, sections.get(category.section, ""), cross_reference)

    @staticmethod
    def aggregate(
        categories: list[CheckCategory],
        outcomes: list[CategoryCheckOutcome | BaseException],
    ) -> Report:
        total_cost = 0.0
        results: list[CategoryResult] = []
        overall_issues: list[Issue] = []

        for category, outcome in zip(categories, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, MalformedResponseError):
                    total_cost += outcome.cost
                LOGGER.error("Category check failed", extra={"category": category.name, "error": str(outcome)})
                results.append(CategoryResult(category=category.name, error=str(outcome)))
                continue

            total_cost += outcome.cost
            kept: list[Issue] = []
            for issue in outcome.result.issues:
                if is_overall_issue(issue):
                    overall_issues.append(issue)
                else:
                    kept.append(issue)
            results.append(outcome.result.model_copy(update={"issues": kept}))

        results.append(CategoryResult(category=OVERALL_CATEGORY, issues=dedupe_issues(overall_issues)))

        failed = [result.category for result in results if result.failed]
        state = CheckRunState.PARTIAL_FAILURE if failed else CheckRunState.DONE
        LOGGER.info(
            "Aggregated check results",
            extra={"categories": len(categories), "failed": failed, "cost": total_cost},
        )
        return Report(results=results, total_cost=total_cost, state=state)
