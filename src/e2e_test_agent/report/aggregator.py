"""Rolls case results into suite results and derives the error report.

Errors are joined to cases after the fact, by timestamp window: an event
belongs to the case whose [started_at, finished_at] interval contains it.
"""

from datetime import datetime
from typing import Iterable

from e2e_test_agent.runner.models import (
    AssertionResult,
    CaseError,
    CaseStatus,
    ConsoleMessage,
    NetworkLog,
    NetworkRequest,
    StepResult,
    TestCaseResult,
)

from .models import BackendError, ErrorReport, FrontendError, TestResults

FRONTEND_ERROR_TYPES = ("error", "pageerror")
BACKEND_ERROR_STATUS = 400


def build_case_result(
    test_case_id: str,
    step_results: Iterable[StepResult],
    assertion_results: Iterable[AssertionResult],
    started_at: datetime,
    finished_at: datetime,
    error: CaseError | None = None,
    description: str = "",
    attempts: int = 1,
) -> TestCaseResult:
    """Build the single, immutable result for a finished case.

    A case passes only when every step succeeded, every assertion held and
    no error was recorded.
    """
    step_results = tuple(step_results)
    assertion_results = tuple(assertion_results)
    passed = (
        error is None
        and all(step.passed for step in step_results)
        and all(result.passed for result in assertion_results)
    )
    failed_step = error.step_index if error is not None else None
    if failed_step is None and not passed:
        failed_step = next((step.index for step in step_results if not step.passed), None)
        if failed_step is None:
            failed_step = next((r.step_index for r in assertion_results if not r.passed), None)

    return TestCaseResult(
        test_case_id=test_case_id,
        description=description,
        passed=passed,
        status=CaseStatus.PASSED if passed else CaseStatus.FAILED,
        step_results=step_results,
        assertion_results=assertion_results,
        failed_step=failed_step,
        error=error,
        started_at=started_at,
        finished_at=finished_at,
        duration_ms=(finished_at - started_at).total_seconds() * 1000,
        attempts=attempts,
    )


class ResultAggregator:
    """Builds TestResults and ErrorReport from finished cases and their logs."""

    def build_results(
        self,
        case_results: list[TestCaseResult],
        logs: Iterable[NetworkLog],
        started_at: datetime,
        finished_at: datetime,
        suite_id: str | None = None,
    ) -> TestResults:
        requests, responses, console = [], [], []
        for log in logs:
            requests.extend(log.requests)
            responses.extend(log.responses)
            console.extend(log.console_messages)

        answered = {response.request_id for response in responses}
        pending = [request for request in requests if request.request_id not in answered]

        passed = sum(1 for result in case_results if result.passed)
        return TestResults(
            suite_id=suite_id,
            results=tuple(case_results),
            total_tests=len(case_results),
            passed_tests=passed,
            failed_tests=len(case_results) - passed,
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=(finished_at - started_at).total_seconds() * 1000,
            network_requests=tuple(sorted(requests, key=lambda r: r.timestamp)),
            network_responses=tuple(sorted(responses, key=lambda r: r.timestamp)),
            console_messages=tuple(sorted(console, key=lambda m: m.timestamp)),
            pending_requests=tuple(sorted(pending, key=lambda r: r.timestamp)),
        )

    def build_error_report(self, results: TestResults) -> ErrorReport:
        requests = {request.request_id: request for request in results.network_requests}

        backend_errors = []
        for response in results.network_responses:
            if response.status < BACKEND_ERROR_STATUS:
                continue
            request = requests.get(response.request_id)
            backend_errors.append(
                BackendError(
                    url=request.url if request else response.url,
                    method=request.method if request else "",
                    status=response.status,
                    status_text=response.status_text,
                    timestamp=response.timestamp,
                    request=request,
                    response=response,
                    test_case_id=attribute(response.timestamp, results.results, response.test_case_id),
                )
            )

        pending = [
            request.model_copy(
                update={"test_case_id": attribute(request.timestamp, results.results, request.test_case_id)}
            )
            for request in results.pending_requests
        ]

        frontend_errors = [
            _frontend_error(message, attribute(message.timestamp, results.results, message.test_case_id))
            for message in results.console_messages
            if message.type in FRONTEND_ERROR_TYPES
        ]

        return ErrorReport(
            results_id=results.id,
            frontend_errors=tuple(frontend_errors),
            backend_errors=tuple(backend_errors),
            pending_requests=tuple(pending),
            summary=summarize(results, frontend_errors, backend_errors, pending),
        )


def attribute(
    timestamp: datetime, case_results: Iterable[TestCaseResult], owner: str | None = None
) -> str | None:
    """Return the id of the case running at `timestamp`, or None for the suite.

    `owner` is the case whose capture session recorded the event; it wins
    whenever its own window contains the timestamp. Otherwise, when several
    case windows contain it (concurrent workers), the earliest-started
    case wins.
    """
    containing = [r for r in case_results if r.started_at <= timestamp <= r.finished_at]
    if not containing:
        return None
    if owner is not None and any(r.test_case_id == owner for r in containing):
        return owner
    return min(containing, key=lambda r: r.started_at).test_case_id


def _frontend_error(message: ConsoleMessage, test_case_id: str | None) -> FrontendError:
    location = None
    if message.location and message.location.url:
        location = message.location.url
        if message.location.line_number is not None:
            location += f":{message.location.line_number}"
            if message.location.column_number is not None:
                location += f":{message.location.column_number}"
    return FrontendError(
        message=message.text,
        location=location,
        stack=message.stack,
        timestamp=message.timestamp,
        console=message,
        test_case_id=test_case_id,
    )


def summarize(
    results: TestResults,
    frontend_errors: list[FrontendError],
    backend_errors: list[BackendError],
    pending_requests: Iterable[NetworkRequest] = (),
) -> str:
    lines = [
        f"Test Results: {results.passed_tests} passed, {results.failed_tests} failed. "
        f"Found {len(frontend_errors)} frontend errors and {len(backend_errors)} backend errors."
    ]
    for error in frontend_errors:
        lines.append(f"- [frontend] {error.message} ({_owner(error.test_case_id)})")
    for error in backend_errors:
        lines.append(f"- [backend] {error.method} {error.url} -> {error.status} ({_owner(error.test_case_id)})")
    for request in pending_requests:
        lines.append(f"- [pending] {request.method} {request.url} got no response ({_owner(request.test_case_id)})")
    return "\n".join(lines)


def _owner(test_case_id: str | None) -> str:
    return f"case {test_case_id}" if test_case_id else "suite"
