"""Test case models produced by the synthesizer and consumed by the engine."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StepAction(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    CHECK = "check"
    SELECT = "select"
    REQUEST = "request"
    CUSTOM = "custom"


class AssertionType(str, Enum):
    STATUS = "status"
    HEADER = "header"
    BODY = "body"
    JSON_PATH = "jsonPath"
    RESPONSE_TIME = "responseTime"


class Operator(str, Enum):
    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    MATCHES = "matches"


class Assertion(BaseModel):
    """A check evaluated against the response of a `request` step."""

    model_config = ConfigDict(frozen=True)

    type: AssertionType
    target: str = ""  # header name, body path or JSON path
    operator: Operator = Operator.EQ
    expected: Any = None


class TestStep(BaseModel):
    """One primitive action. Steps know nothing about their siblings."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    id: str
    action: StepAction
    target: str = ""  # selector, URL, or script depending on the action
    value: Any = None
    expected_result: str = ""
    description: str = ""
    # request steps only
    method: str = "GET"
    headers: dict[str, str] = {}
    body: Any = None
    assertions: list[Assertion] = []


class TestCase(BaseModel):
    """An ordered list of steps; step order is execution order."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    id: str
    description: str = ""
    steps: list[TestStep]
    tags: list[str] = []

    @property
    def is_ui(self) -> bool:
        return any(step.action != StepAction.REQUEST for step in self.steps)


class TestSuite(BaseModel):
    """An ordered collection of test cases executed and reported together."""

    __test__ = False

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str = ""
    test_cases: list[TestCase] = []
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
