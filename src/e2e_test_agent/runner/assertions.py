"""Evaluation of request-step assertions against an HTTP response."""

import json
import re
from typing import Any

from e2e_test_agent.generator.models import Assertion, AssertionType, Operator

from .http import HttpResponse
from .models import AssertionResult

_MISSING = object()


def extract_json_path(data: Any, path: str) -> Any:
    """Extract a value from nested JSON using a simple path syntax.

    Supported syntax examples:
      - "$" -> the whole document
      - "data.id" -> nested dict
      - "items[0].id" -> list index
      - "$.items[0]" -> JSONPath-style root

    Returns the found value, or a module sentinel when the path is absent.
    """
    if path in ("", "$"):
        return data
    if path.startswith("$."):
        path = path[2:]
    elif path.startswith("$"):
        path = path[1:]

    cur = data
    for tok in path.split("."):
        match = re.match(r"^(?P<key>[^\[\]]*)(?P<idx>(?:\[\d+\])*)$", tok)
        if not match:
            return _MISSING
        key = match.group("key")
        if key:
            if not isinstance(cur, dict) or key not in cur:
                return _MISSING
            cur = cur[key]
        for idx in re.findall(r"\[(\d+)\]", match.group("idx")):
            if not isinstance(cur, list) or int(idx) >= len(cur):
                return _MISSING
            cur = cur[int(idx)]
    return cur


def evaluate_assertion(assertion: Assertion, response: HttpResponse, step_index: int | None = None) -> AssertionResult:
    """Evaluate one assertion; never raises for a mismatch."""
    kind = assertion.type
    if kind == AssertionType.STATUS:
        actual = response.status
    elif kind == AssertionType.HEADER:
        actual = _header(response.headers, assertion.target)
    elif kind == AssertionType.BODY:
        body = response.body if response.body != "" else None
        actual = body if not assertion.target else extract_json_path(body, assertion.target)
    elif kind == AssertionType.JSON_PATH:
        actual = extract_json_path(response.body, assertion.target or "$")
    else:
        actual = response.elapsed_ms

    if actual is _MISSING:
        actual = None
        passed = assertion.operator == Operator.NE and assertion.expected is not None
    else:
        try:
            passed = compare_values(actual, assertion.expected, assertion.operator)
        except (TypeError, re.error) as e:
            return AssertionResult(
                assertion=assertion,
                passed=False,
                actual=actual,
                message=f"{kind.value} assertion could not be evaluated: {e}",
                step_index=step_index,
            )

    label = f"{kind.value}{' ' + assertion.target if assertion.target else ''}"
    message = f"{label} {assertion.operator.value} {assertion.expected!r}"
    if passed:
        message = f"{message} passed"
    else:
        message = f"{message} failed (actual: {actual!r})"
    return AssertionResult(assertion=assertion, passed=passed, actual=actual, message=message, step_index=step_index)


def evaluate_assertions(
    assertions: list[Assertion], response: HttpResponse, step_index: int | None = None
) -> list[AssertionResult]:
    """Evaluate every assertion; later assertions run even after a failure."""
    return [evaluate_assertion(assertion, response, step_index) for assertion in assertions]


def compare_values(actual: Any, expected: Any, operator: Operator) -> bool:
    if operator == Operator.EQ:
        return _equal(actual, expected)
    if operator == Operator.NE:
        return not _equal(actual, expected)
    if operator in (Operator.GT, Operator.LT, Operator.GE, Operator.LE):
        left, right = _number(actual), _number(expected)
        return {
            Operator.GT: left > right,
            Operator.LT: left < right,
            Operator.GE: left >= right,
            Operator.LE: left <= right,
        }[operator]
    if operator == Operator.CONTAINS:
        if isinstance(actual, str) and isinstance(expected, str):
            return expected in actual
        if isinstance(actual, dict) and isinstance(expected, str):
            return expected in actual
        if isinstance(actual, list):
            return expected in actual
        return json.dumps(expected) in json.dumps(actual)
    if operator == Operator.STARTS_WITH:
        return str(actual).startswith(str(expected))
    if operator == Operator.ENDS_WITH:
        return str(actual).endswith(str(expected))
    if operator == Operator.MATCHES:
        return re.search(str(expected), str(actual)) is not None
    raise TypeError(f"unknown operator {operator}")


def _equal(actual: Any, expected: Any) -> bool:
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    if _is_number(actual) and isinstance(expected, str):
        try:
            return actual == float(expected)
        except ValueError:
            return False
    return json.dumps(actual, sort_keys=True, default=str) == json.dumps(expected, sort_keys=True, default=str)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("booleans are not ordered")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            raise TypeError(f"{value!r} is not numeric") from None
    raise TypeError(f"{type(value).__name__} is not numeric")


def _header(headers: dict[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None
