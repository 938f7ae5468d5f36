"""CLI entrypoint for running a formal check on one patent PDF."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click

from patent_qc_app.checks.pipeline import EXTRACTION_STRATEGIES, FormalCheckPipeline
from patent_qc_app.config.logging import configure_logging, get_logger
from patent_qc_app.config.settings import get_settings
from patent_qc_app.db.history_repository import HistoryRepository
from patent_qc_app.llm.context import get_inference_context
from patent_qc_app.llm.errors import InferenceError

configure_logging(json_logs=get_settings().log_json, level=get_settings().log_level)
LOGGER = get_logger(__name__)


@click.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--strategy", type=click.Choice(EXTRACTION_STRATEGIES), default=None, help="Section extraction strategy")
@click.option("--category", "categories", multiple=True, help="Check only these categories (repeatable)")
@click.option("--save-history/--no-save-history", default=False, help="Record the run in the MongoDB history store")
@click.option("--json-output", is_flag=True, help="Print the report as JSON")
def run_formal_check(
    source: Path,
    strategy: str | None,
    categories: tuple[str, ...],
    save_history: bool,
    json_output: bool,
) -> None:
    """Run the formal quality check on SOURCE and print the report."""
    get_inference_context().subscribe(lambda event: click.echo(f"[{event.event}] {event.model_dump_json()}", err=True))
    pipeline = FormalCheckPipeline(history=HistoryRepository() if save_history else None)

    try:
        report = asyncio.run(
            pipeline.run(
                source,
                categories=list(categories) or None,
                strategy=strategy,
                on_progress=lambda message: click.echo(message, err=True),
            )
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    except InferenceError as exc:
        raise click.ClickException(str(exc)) from exc

    if json_output:
        click.echo(json.dumps(report.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return

    for result in report.results:
        header = result.category
        if result.char_count is not None:
            header += f" ({result.char_count} chars)"
        click.echo(f"\n== {header}")
        if result.error:
            click.echo(f"  ERROR: {result.error}")
            continue
        if not result.issues:
            click.echo("  no issues")
        for issue in result.issues:
            click.echo(f"  - {issue.description}\n    -> {issue.suggestion}")

    click.echo(f"\nState: {report.state.value}  Issues: {report.issue_count()}  Cost: ¥{report.total_cost:.4f}")


if __name__ == "__main__":
    run_formal_check()
