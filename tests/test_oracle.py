import json

import pytest

from e2e_test_agent.errors import OracleResponseError
from e2e_test_agent.generator.models import StepAction
from e2e_test_agent.generator.oracle import build_prompt, default_case, parse_oracle_output

VALID = {
    "name": "Checkout",
    "testCases": [
        {
            "id": "tc1",
            "description": "Open cart",
            "steps": [
                {"id": "step1", "action": "navigate", "target": "/cart"},
                {"action": "click", "selector": "#checkout", "expectedResult": "Checkout opens"},
            ],
        }
    ],
}


class TestParseOracleOutput:
    def test_plain_json(self):
        name, cases = parse_oracle_output(json.dumps(VALID))
        assert name == "Checkout"
        assert cases[0].steps[0].action == StepAction.NAVIGATE
        assert cases[0].steps[1].id == "step-2"
        assert cases[0].steps[1].target == "#checkout"
        assert cases[0].steps[1].expected_result == "Checkout opens"

    def test_code_fenced_json(self):
        text = "Here you go:\n```json\n" + json.dumps(VALID) + "\n```\n"
        _, cases = parse_oracle_output(text)
        assert len(cases) == 1

    def test_bare_list_and_snake_case_key(self):
        _, cases = parse_oracle_output(json.dumps(VALID["testCases"]))
        assert cases[0].id == "tc1"
        _, cases = parse_oracle_output(json.dumps({"test_cases": VALID["testCases"]}))
        assert cases[0].id == "tc1"

    def test_not_json(self):
        with pytest.raises(OracleResponseError):
            parse_oracle_output("I cannot help with that.")

    def test_unknown_action(self):
        bad = {"testCases": [{"id": "x", "steps": [{"action": "hover", "target": "#a"}]}]}
        with pytest.raises(OracleResponseError):
            parse_oracle_output(json.dumps(bad))

    def test_no_cases(self):
        with pytest.raises(OracleResponseError):
            parse_oracle_output(json.dumps({"testCases": []}))

    def test_case_without_steps(self):
        with pytest.raises(OracleResponseError):
            parse_oracle_output(json.dumps({"testCases": [{"id": "x", "steps": []}]}))


class TestPrompts:
    def test_api_prompt_includes_spec(self):
        prompt = build_prompt("list users", test_type="api", api_spec="GET /users")
        assert "request" in prompt
        assert prompt.endswith("API specification:\nGET /users")

    def test_ui_prompt_ignores_spec(self):
        prompt = build_prompt("log in", test_type="ui", api_spec="GET /users")
        assert "GET /users" not in prompt


class TestDefaultCase:
    def test_ui_default(self):
        case = default_case("ui")
        assert case.is_ui
        assert case.steps[0].action == StepAction.NAVIGATE

    def test_api_default(self):
        case = default_case("api")
        assert not case.is_ui
        assert case.steps[0].assertions[0].expected == 200
