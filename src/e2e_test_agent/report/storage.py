"""JSON file storage for suites, results and error reports."""

from pathlib import Path
from typing import TypeVar

from loguru import logger
from pydantic import BaseModel

from e2e_test_agent.generator.models import TestSuite

from .models import ErrorReport, TestResults

M = TypeVar("M", bound=BaseModel)


class ReportStore:
    """Stores each record as `<dir>/<kind>/<id>.json`."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path(self, kind: str, record_id: str) -> Path:
        return self.root / kind / f"{record_id}.json"

    def _save(self, kind: str, record_id: str, model: BaseModel) -> Path:
        path = self._path(kind, record_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(model.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(f"Saved {kind} {record_id} to {path}")
        return path

    def _load(self, kind: str, record_id: str, model: type[M]) -> M:
        path = self._path(kind, record_id)
        return model.model_validate_json(path.read_text(encoding="utf-8"))

    def save_suite(self, suite: TestSuite) -> Path:
        return self._save("suites", suite.id, suite)

    def load_suite(self, suite_id: str) -> TestSuite:
        return self._load("suites", suite_id, TestSuite)

    def save_results(self, results: TestResults) -> Path:
        return self._save("results", results.id, results)

    def load_results(self, results_id: str) -> TestResults:
        return self._load("results", results_id, TestResults)

    def save_error_report(self, report: ErrorReport) -> Path:
        return self._save("reports", report.id, report)

    def load_error_report(self, report_id: str) -> ErrorReport:
        return self._load("reports", report_id, ErrorReport)

    def list_ids(self, kind: str) -> list[str]:
        directory = self.root / kind
        if not directory.is_dir():
            return []
        return sorted(path.stem for path in directory.glob("*.json"))
