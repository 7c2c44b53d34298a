"""Execution engine: runs test cases step by step and records their outcome.

Steps of one case run strictly in order. Cases of a suite run on a
bounded pool of workers sharing one event loop; each UI case gets its own
execution context and capture session.
"""

import asyncio
import json
import time
from typing import Any

from loguru import logger

from e2e_test_agent.errors import CaseCancelledError, ErrorKind, StepExecutionError, StepTimeoutError
from e2e_test_agent.generator.models import StepAction, TestCase, TestStep
from e2e_test_agent.report.aggregator import ResultAggregator, build_case_result
from e2e_test_agent.report.models import TestResults

from .assertions import evaluate_assertions
from .capture import CaptureSession
from .context import ContextFactory, ExecutionContext
from .http import HttpClient
from .models import (
    AssertionResult,
    CaseError,
    CaseStatus,
    NetworkLog,
    NetworkRequest,
    NetworkResponse,
    StepResult,
    TestCaseResult,
    utcnow,
)


class ExecutionEngine:
    """Runs cases against an execution context factory and an HTTP client.

    Execution errors never escape: every case, however it ends, yields a
    TestCaseResult, also kept in `results` by case id. Cancelling the task
    that runs a case records its Cancelled result there and then re-raises
    the cancellation to the caller.
    """

    def __init__(
        self,
        context_factory: ContextFactory | None = None,
        http_client: HttpClient | None = None,
        base_url: str = "",
        step_timeout: float = 30.0,
        max_workers: int = 4,
        retries: int = 0,
        aggregator: ResultAggregator | None = None,
    ):
        self.context_factory = context_factory
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.step_timeout = step_timeout
        self.max_workers = max(1, max_workers)
        self.retries = max(0, retries)
        self.aggregator = aggregator or ResultAggregator()
        self.status: dict[str, CaseStatus] = {}
        self.results: dict[str, TestCaseResult] = {}

    # ---- suites ----

    async def run_suite(
        self,
        cases: list[TestCase],
        suite_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> TestResults:
        """Run `cases` on the worker pool; results keep the input order."""
        started_at = utcnow()
        semaphore = asyncio.Semaphore(self.max_workers)
        logs: list[NetworkLog] = []
        for case in cases:
            self.status[case.id] = CaseStatus.PENDING

        async def worker(case: TestCase) -> TestCaseResult:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning(f"[{case.id}] cancelled before start")
                    return self._cancelled_result(case)
                result, case_logs = await self._run_with_retries(case, cancel_event)
                logs.extend(case_logs)
                self.results[case.id] = result
                return result

        results = await asyncio.gather(*(worker(case) for case in cases))
        finished_at = utcnow()
        logger.info(
            f"Suite finished: {sum(r.passed for r in results)}/{len(results)} passed "
            f"in {(finished_at - started_at).total_seconds():.2f}s"
        )
        return self.aggregator.build_results(list(results), logs, started_at, finished_at, suite_id=suite_id)

    async def _run_with_retries(
        self, case: TestCase, cancel_event: asyncio.Event | None
    ) -> tuple[TestCaseResult, list[NetworkLog]]:
        logs = []
        first_start = None
        attempt = 0
        while True:
            attempt += 1
            result, log = await self.execute_case(case, cancel_event)
            logs.append(log)
            first_start = first_start or result.started_at
            if result.passed or attempt > self.retries:
                break
            if result.error is not None and result.error.kind == ErrorKind.CANCELLED:
                break
            logger.info(f"[{case.id}] retrying (attempt {attempt + 1} of {self.retries + 1})")

        if attempt > 1:
            result = result.model_copy(
                update={
                    "attempts": attempt,
                    "started_at": first_start,
                    "duration_ms": (result.finished_at - first_start).total_seconds() * 1000,
                }
            )
        return result, logs

    def _cancelled_result(self, case: TestCase) -> TestCaseResult:
        now = utcnow()
        result = build_case_result(
            case.id,
            [],
            [],
            started_at=now,
            finished_at=now,
            error=CaseError(kind=ErrorKind.CANCELLED, message="Cancelled before start"),
            description=case.description,
        )
        self.status[case.id] = result.status
        self.results[case.id] = result
        return result

    # ---- cases ----

    async def run_case(self, case: TestCase, cancel_event: asyncio.Event | None = None) -> TestCaseResult:
        result, _ = await self.execute_case(case, cancel_event)
        return result

    async def execute_case(
        self, case: TestCase, cancel_event: asyncio.Event | None = None
    ) -> tuple[TestCaseResult, NetworkLog]:
        """Run one attempt of `case`, returning its result and captured log."""
        started_at = utcnow()
        self.status[case.id] = CaseStatus.RUNNING
        logger.info(f"[{case.id}] running {len(case.steps)} steps: {case.description}")

        step_results: list[StepResult] = []
        assertion_results: list[AssertionResult] = []
        error: CaseError | None = None
        task_cancelled = False
        context: ExecutionContext | None = None
        capture = CaptureSession(None, case.id)
        try:
            if case.is_ui:
                context = await self._open_context()
                capture = CaptureSession(context, case.id)
            async with capture:
                for index, step in enumerate(case.steps):
                    if cancel_event is not None and cancel_event.is_set():
                        raise CaseCancelledError(f"Cancelled before step {index}")
                    step_start = time.monotonic()
                    try:
                        results = await self._run_step(case.id, step, index, context, capture)
                    except StepExecutionError as e:
                        step_results.append(
                            StepResult(step_id=step.id, index=index, passed=False, duration_ms=_since(step_start), error=str(e))
                        )
                        raise
                    step_results.append(StepResult(step_id=step.id, index=index, passed=True, duration_ms=_since(step_start)))
                    assertion_results.extend(results)
        except StepExecutionError as e:
            error = CaseError(kind=e.kind, message=str(e), step_index=e.step_index)
        except CaseCancelledError as e:
            logger.warning(f"[{case.id}] {e}")
            error = CaseError(kind=ErrorKind.CANCELLED, message=str(e))
        except asyncio.CancelledError:
            logger.warning(f"[{case.id}] task cancelled")
            error = CaseError(kind=ErrorKind.CANCELLED, message="Case task was cancelled")
            task_cancelled = True
        finally:
            if context is not None:
                await self._close_context(case.id, context)

        log = capture.close()
        if error is None:
            failed = next((r for r in assertion_results if not r.passed), None)
            if failed is not None:
                error = CaseError(kind=ErrorKind.ASSERTION, message=failed.message, step_index=failed.step_index)

        result = build_case_result(
            case.id,
            step_results,
            assertion_results,
            started_at=started_at,
            finished_at=utcnow(),
            error=error,
            description=case.description,
        )
        self.status[case.id] = result.status
        logger.info(f"[{case.id}] {result.status.value} in {result.duration_ms:.0f}ms")
        self.results[case.id] = result
        if task_cancelled:
            raise asyncio.CancelledError
        return result, log

    async def _open_context(self) -> ExecutionContext:
        if self.context_factory is None:
            raise StepExecutionError(0, "UI case requires an execution context, but none is configured")
        try:
            return await self.context_factory.open_context()
        except Exception as e:
            raise StepExecutionError(0, f"Could not open execution context: {e}") from e

    async def _close_context(self, case_id: str, context: ExecutionContext) -> None:
        try:
            await context.close()
        except Exception as e:
            logger.warning(f"[{case_id}] error closing execution context: {e}")

    # ---- steps ----

    async def _run_step(
        self,
        case_id: str,
        step: TestStep,
        index: int,
        context: ExecutionContext | None,
        capture: CaptureSession,
    ) -> list[AssertionResult]:
        try:
            return await asyncio.wait_for(self._perform(step, index, context, capture), timeout=self.step_timeout)
        except asyncio.TimeoutError:
            logger.error(f"[{case_id}] step {index} ({step.action.value}) timed out")
            raise StepTimeoutError(index, self.step_timeout) from None
        except StepExecutionError:
            raise
        except Exception as e:
            logger.error(f"[{case_id}] step {index} ({step.action.value}) failed: {e}")
            raise StepExecutionError(index, f"{step.action.value} {step.target} failed: {e}") from e

    async def _perform(
        self, step: TestStep, index: int, context: ExecutionContext | None, capture: CaptureSession
    ) -> list[AssertionResult]:
        if step.action == StepAction.REQUEST:
            return await self._request(step, index, capture)
        if context is None:
            raise StepExecutionError(index, f"No execution context for {step.action.value} step")

        if step.action == StepAction.NAVIGATE:
            await context.load(self.resolve(step.target))
        elif step.action == StepAction.CLICK:
            await context.invoke(step.target)
        elif step.action == StepAction.FILL:
            await context.set_value(step.target, _text(step.value))
        elif step.action == StepAction.CHECK:
            await context.toggle(step.target)
        elif step.action == StepAction.SELECT:
            await context.choose_option(step.target, _text(step.value))
        elif step.action == StepAction.CUSTOM:
            outcome = await context.evaluate(step.target)
            if not outcome:
                raise StepExecutionError(index, f"Custom check returned {outcome!r}: {step.expected_result or step.target}")
        return []

    async def _request(self, step: TestStep, index: int, capture: CaptureSession) -> list[AssertionResult]:
        if self.http_client is None:
            raise StepExecutionError(index, "request step requires an HTTP client, but none is configured")

        url = self.resolve(step.target)
        request = NetworkRequest(
            url=url,
            method=step.method.upper(),
            headers=dict(step.headers),
            post_data=_post_data(step.body),
            resource_type="fetch",
        )
        capture.record_request(request)
        response = await self.http_client.issue(step.method, url, headers=dict(step.headers), body=step.body)
        capture.record_response(
            NetworkResponse(
                request_id=request.request_id,
                url=url,
                status=response.status,
                status_text=response.status_text,
                headers=response.headers,
                body=response.text or None,
            )
        )
        return evaluate_assertions(step.assertions, response, step_index=index)

    def resolve(self, target: str) -> str:
        if target.startswith(("http://", "https://")) or not self.base_url:
            return target
        return self.base_url + "/" + target.lstrip("/")


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _post_data(body: Any) -> str | None:
    if body is None:
        return None
    if isinstance(body, str):
        return body
    return json.dumps(body)


def _since(start: float) -> float:
    return (time.monotonic() - start) * 1000
