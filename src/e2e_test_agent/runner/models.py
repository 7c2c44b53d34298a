"""Captured events and per-case execution results."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from e2e_test_agent.errors import ErrorKind
from e2e_test_agent.generator.models import Assertion


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NetworkRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    url: str
    method: str = "GET"
    headers: dict[str, str] = {}
    post_data: str | None = None
    resource_type: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    test_case_id: str | None = None  # case whose capture session recorded it


class NetworkResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_id: str
    url: str = ""
    status: int
    status_text: str = ""
    headers: dict[str, str] = {}
    body: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)
    test_case_id: str | None = None


class ConsoleLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = ""
    line_number: int | None = None
    column_number: int | None = None


class ConsoleMessage(BaseModel):
    """A console entry; uncaught page exceptions use type `pageerror`."""

    model_config = ConfigDict(frozen=True)

    type: str
    text: str
    location: ConsoleLocation | None = None
    stack: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)
    test_case_id: str | None = None


class NetworkLog(BaseModel):
    """Frozen capture output for one case."""

    model_config = ConfigDict(frozen=True)

    test_case_id: str | None = None
    requests: tuple[NetworkRequest, ...] = ()
    responses: tuple[NetworkResponse, ...] = ()
    console_messages: tuple[ConsoleMessage, ...] = ()

    def response_for(self, request_id: str) -> NetworkResponse | None:
        for response in self.responses:
            if response.request_id == request_id:
                return response
        return None


class CaseStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    PASSED = "Passed"
    FAILED = "Failed"


class CaseError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    step_index: int | None = None


class AssertionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    assertion: Assertion
    passed: bool
    actual: Any = None
    message: str = ""
    step_index: int | None = None


class StepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_id: str
    index: int  # 0-based position in the case
    passed: bool
    duration_ms: float = 0.0
    error: str | None = None


class TestCaseResult(BaseModel):
    """Outcome of one case; built once after the case finishes."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    test_case_id: str
    description: str = ""
    passed: bool
    status: CaseStatus
    step_results: tuple[StepResult, ...] = ()
    assertion_results: tuple[AssertionResult, ...] = ()
    failed_step: int | None = None
    error: CaseError | None = None
    started_at: datetime
    finished_at: datetime
    duration_ms: float = 0.0
    attempts: int = 1
