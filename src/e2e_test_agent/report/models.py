"""Suite-level result and error report models."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from e2e_test_agent.runner.models import (
    ConsoleMessage,
    NetworkRequest,
    NetworkResponse,
    TestCaseResult,
    utcnow,
)


class TestResults(BaseModel):
    """Rolled-up outcome of one suite run."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    suite_id: str | None = None
    results: tuple[TestCaseResult, ...] = ()
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    started_at: datetime
    finished_at: datetime
    duration_ms: float = 0.0
    network_requests: tuple[NetworkRequest, ...] = ()
    network_responses: tuple[NetworkResponse, ...] = ()
    console_messages: tuple[ConsoleMessage, ...] = ()
    pending_requests: tuple[NetworkRequest, ...] = ()  # requests that never got a response


class FrontendError(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    location: str | None = None
    stack: str | None = None
    timestamp: datetime
    console: ConsoleMessage
    test_case_id: str | None = None  # None: attributed to the suite


class BackendError(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    method: str
    status: int
    status_text: str = ""
    timestamp: datetime
    request: NetworkRequest | None = None
    response: NetworkResponse
    test_case_id: str | None = None


class ErrorReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    results_id: str | None = None
    frontend_errors: tuple[FrontendError, ...] = ()
    backend_errors: tuple[BackendError, ...] = ()
    pending_requests: tuple[NetworkRequest, ...] = ()
    summary: str = ""
    created_at: datetime = Field(default_factory=utcnow)
