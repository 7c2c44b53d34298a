"""Prompts for the text-generation oracle and validation of its output.

The oracle's reply is untrusted text: it is only accepted after it parses
as JSON and every case validates against the TestCase model.
"""

import json
import re

from pydantic import ValidationError

from e2e_test_agent.errors import OracleResponseError

from .models import StepAction, TestCase

SYSTEM_PROMPT = """You are a test automation expert. Generate comprehensive test cases, covering positive and negative scenarios.

Output ONLY a JSON object, no explanation and no Markdown."""

UI_PROMPT = """Generate a UI test suite for the requirements below. Use this JSON structure:
{
  "name": "suite name",
  "description": "suite description",
  "testCases": [
    {
      "id": "tc1",
      "description": "what the case verifies",
      "steps": [
        {
          "id": "step1",
          "description": "step description",
          "action": "navigate|click|fill|check|select|custom",
          "target": "URL, CSS selector, or JavaScript expression for custom",
          "value": "input value (if any)",
          "expected_result": "expected outcome of this step"
        }
      ]
    }
  ]
}

Requirements:
"""

API_PROMPT = """Generate an API test suite for the requirements below. Use this JSON structure:
{
  "name": "suite name",
  "description": "suite description",
  "testCases": [
    {
      "id": "tc1",
      "description": "what the case verifies",
      "steps": [
        {
          "id": "step1",
          "description": "step description",
          "action": "request",
          "method": "GET|POST|PUT|DELETE|PATCH",
          "target": "/api/endpoint",
          "headers": {"Content-Type": "application/json"},
          "body": null,
          "assertions": [{"type": "status", "operator": "=", "expected": 200}]
        }
      ]
    }
  ]
}

Requirements:
"""


def build_prompt(requirements: str, test_type: str = "ui", api_spec: str | None = None) -> str:
    template = API_PROMPT if test_type == "api" else UI_PROMPT
    prompt = template + requirements
    if api_spec and test_type == "api":
        prompt += f"\n\nAPI specification:\n{api_spec}"
    return prompt


def parse_oracle_output(text: str) -> tuple[str | None, list[TestCase]]:
    """Parse oracle output into (suite name, test cases).

    Raises OracleResponseError when the text is not JSON, has no cases,
    or any case fails validation (for example an unknown step action).
    """
    try:
        data = json.loads(_extract_json(text or ""))
    except ValueError as e:
        raise OracleResponseError(f"Oracle output is not valid JSON: {e}") from e

    name = None
    if isinstance(data, dict):
        name = data.get("name")
        raw_cases = data.get("testCases", data.get("test_cases"))
    else:
        raw_cases = data
    if not isinstance(raw_cases, list) or not raw_cases:
        raise OracleResponseError("Oracle output contains no test cases")

    cases = []
    for index, raw in enumerate(raw_cases, start=1):
        if not isinstance(raw, dict):
            raise OracleResponseError(f"Test case #{index} is not an object")
        try:
            cases.append(TestCase(**_normalize_case(raw, index)))
        except ValidationError as e:
            raise OracleResponseError(f"Test case #{index} is invalid: {e.errors()[0]['msg']}") from e
    return name, cases


def _normalize_case(raw: dict, index: int) -> dict:
    steps = []
    for number, step in enumerate(raw.get("steps") or [], start=1):
        if not isinstance(step, dict):
            raise OracleResponseError(f"Step {number} of test case #{index} is not an object")
        step = dict(step)
        step["id"] = str(step.get("id") or f"step-{number}")
        # Older prompt layouts used selector/endpoint/customScript for the target.
        for alias in ("selector", "endpoint", "customScript"):
            if not step.get("target") and step.get(alias):
                step["target"] = step[alias]
            step.pop(alias, None)
        if "expectedResult" in step:
            step["expected_result"] = step.pop("expectedResult")
        steps.append(step)
    if not steps:
        raise OracleResponseError(f"Test case #{index} has no steps")

    return {
        "id": str(raw.get("id") or ""),
        "description": raw.get("description") or raw.get("name") or "",
        "steps": steps,
        "tags": raw.get("tags") or [],
    }


def _extract_json(text: str) -> str:
    """Extract JSON from a response that might contain Markdown code blocks."""
    match = re.search(r"```(?:json)?\s*\n(.*?)```", text, re.DOTALL)
    if match:
        return match.group(1).strip()
    return text.strip()


def default_case(test_type: str = "ui") -> TestCase:
    """Minimal case substituted when the oracle output is unusable."""
    if test_type == "api":
        steps = [
            {
                "id": "step-1",
                "action": StepAction.REQUEST,
                "target": "/",
                "method": "GET",
                "description": "Simple GET request to the API root",
                "assertions": [{"type": "status", "operator": "=", "expected": 200}],
            }
        ]
    else:
        steps = [
            {
                "id": "step-1",
                "action": StepAction.NAVIGATE,
                "target": "/",
                "description": "Open the home page",
                "expected_result": "Page loads",
            }
        ]
    return TestCase(id="tc-001", description="Default smoke test (oracle output unusable)", steps=steps, tags=["fallback"])
