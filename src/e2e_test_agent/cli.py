"""CLI entry point for e2e-test-agent."""

import asyncio
from pathlib import Path

import click
from pydantic import ValidationError

from e2e_test_agent.config import get_settings
from e2e_test_agent.errors import AgentError, UnsupportedFormatError
from e2e_test_agent.generator.models import TestSuite
from e2e_test_agent.generator.script import ScriptGenerator
from e2e_test_agent.generator.testcase import TestCaseGenerator
from e2e_test_agent.log import setup_logging
from e2e_test_agent.parser.detect import DocumentFormat, detect_format
from e2e_test_agent.parser.registry import build_default_registry
from e2e_test_agent.report.markdown import render_markdown
from e2e_test_agent.report.models import ErrorReport, TestResults
from e2e_test_agent.report.storage import ReportStore
from e2e_test_agent.runner.context import PlaywrightDriver
from e2e_test_agent.runner.engine import ExecutionEngine
from e2e_test_agent.runner.http import HttpClient

FORMAT_CHOICES = ["auto"] + [fmt.value for fmt in DocumentFormat]


@click.group()
@click.option("--log-level", default=None, help="Log level (defaults to LOG_LEVEL or INFO).")
def main(log_level: str | None):
    """E2E Test Agent: generate and run end-to-end tests from API docs or requirements."""
    setup_logging(log_level or get_settings().log_level)


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
def detect(doc_path: Path):
    """Print the detected format of an API document."""
    try:
        fmt = detect_format(doc_path.read_text(encoding="utf-8"), doc_path.name)
    except UnsupportedFormatError as e:
        raise click.ClickException(str(e))
    click.echo(fmt.value)


@main.command()
@click.argument("source", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file path for the suite JSON.")
@click.option("--source-type", default="auto", type=click.Choice(["auto", "document", "text", "oracle"]), help="How to read SOURCE.")
@click.option("--test-type", default="ui", type=click.Choice(["ui", "api"]), help="Test type requested from the oracle.")
@click.option("--format", "fmt", default="auto", type=click.Choice(FORMAT_CHOICES), help="Document format.")
@click.option("--name", default=None, help="Suite name (defaults to the document title or file name).")
@click.option("--model", default=None, help="LLM model to use for --source-type oracle.")
@click.option("--max-cases", default=None, type=int, help="Maximum number of cases synthesized from text.")
@click.option("--script", "script_path", default=None, type=click.Path(path_type=Path), help="Also write a Playwright pytest script.")
def gen_cases(
    source: Path,
    output: Path,
    source_type: str,
    test_type: str,
    fmt: str,
    name: str | None,
    model: str | None,
    max_cases: int | None,
    script_path: Path | None,
):
    """Generate a test suite from an API document or a requirements file."""
    settings = get_settings()
    text = source.read_text(encoding="utf-8")
    gen = TestCaseGenerator(
        model=model or settings.llm_model,
        max_cases=max_cases if max_cases is not None else settings.max_test_cases,
    )

    if source_type == "auto":
        try:
            detect_format(text, source.name)
            source_type = "document"
        except UnsupportedFormatError:
            source_type = "text"

    base_url = settings.api_url
    try:
        if source_type == "document":
            click.echo(f"Parsing {source} (format: {fmt})...")
            doc = build_default_registry().parse(text, source.name, None if fmt == "auto" else fmt)
            click.echo(f"Found {len(doc.endpoints)} endpoints.")
            if not doc.base_url:
                doc = doc.model_copy(update={"base_url": base_url})
            base_url = doc.base_url
            cases = gen.from_document(doc)
            suite = gen.build_suite(name or doc.title or source.stem, cases, doc.description)
        elif source_type == "oracle":
            click.echo(f"Asking the model for {test_type} test cases...")
            cases = gen.from_oracle(text, test_type=test_type)
            suite = gen.build_suite(name or source.stem, cases)
        else:
            cases = gen.from_text(text)
            suite = gen.build_suite(name or source.stem, cases)
    except AgentError as e:
        raise click.ClickException(str(e))

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(suite.model_dump_json(indent=2), encoding="utf-8")
    click.echo(f"Generated {len(suite.test_cases)} test cases; suite saved to {output}")

    if script_path:
        files = ScriptGenerator(base_url=base_url).render(suite.test_cases, filename=script_path.name)
        script_path.parent.mkdir(parents=True, exist_ok=True)
        script_path.write_text(files[script_path.name], encoding="utf-8")
        click.echo(f"Script saved to {script_path}")


@main.command()
@click.argument("suite_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Results directory (defaults to TEST_STORAGE_DIR).")
@click.option("--base-url", default=None, help="Base URL for relative targets (defaults to API_URL).")
@click.option("--workers", default=None, type=int, help="Maximum cases run concurrently.")
@click.option("--retries", default=None, type=int, help="Extra attempts for failed cases.")
def run(suite_path: Path, output: Path | None, base_url: str | None, workers: int | None, retries: int | None):
    """Execute a suite JSON file and write results and an error report."""
    settings = get_settings()
    try:
        suite = TestSuite.model_validate_json(suite_path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise click.ClickException(f"Invalid suite file {suite_path}: {e}")
    click.echo(f"Running {len(suite.test_cases)} test cases from {suite.name}...")

    results, report = asyncio.run(
        _run_suite(
            suite,
            settings,
            base_url=base_url or settings.api_url,
            workers=workers if workers is not None else settings.max_workers,
            retries=retries if retries is not None else settings.test_retries,
        )
    )

    store = ReportStore(output or settings.test_storage_dir)
    results_path = store.save_results(results)
    report_path = store.save_error_report(report)
    markdown_path = report_path.with_suffix(".md")
    markdown_path.write_text(render_markdown(report), encoding="utf-8")

    click.echo(report.summary)
    click.echo(f"Results saved to {results_path}")
    click.echo(f"Error report saved to {report_path}")
    if results.failed_tests:
        raise SystemExit(1)


async def _run_suite(suite: TestSuite, settings, base_url: str, workers: int, retries: int) -> tuple[TestResults, ErrorReport]:
    driver = PlaywrightDriver(settings) if any(case.is_ui for case in suite.test_cases) else None
    async with HttpClient(base_url=base_url, timeout=settings.step_timeout) as http_client:
        engine = ExecutionEngine(
            context_factory=driver,
            http_client=http_client,
            base_url=base_url,
            step_timeout=settings.step_timeout,
            max_workers=workers,
            retries=retries,
        )
        try:
            results = await engine.run_suite(suite.test_cases, suite_id=suite.id)
        finally:
            if driver is not None:
                await driver.close()
    return results, engine.aggregator.build_error_report(results)
