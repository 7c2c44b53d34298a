import json
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner
from pydantic import ValidationError

from conftest import FakeHttpClient
from e2e_test_agent.cli import main
from e2e_test_agent.config import get_settings
from e2e_test_agent.generator.models import TestCase, TestStep, TestSuite
from e2e_test_agent.runner.http import HttpResponse

FIXTURES = Path(__file__).parent / "fixtures"


class _StubHttpClient(FakeHttpClient):
    def __init__(self, base_url="", timeout=None, responses=None):
        super().__init__(responses=responses)
        self.base_url = base_url

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None


def _write_suite(path: Path, statuses: dict[str, int]) -> TestSuite:
    cases = [
        TestCase(
            id=f"tc-{number:03d}",
            description=f"GET {target}",
            steps=[
                TestStep(
                    id="step-1",
                    action="request",
                    target=target,
                    assertions=[{"type": "status", "expected": 200}],
                )
            ],
        )
        for number, target in enumerate(statuses, start=1)
    ]
    suite = TestSuite(name="health", test_cases=cases)
    path.write_text(suite.model_dump_json(), encoding="utf-8")
    return suite


class TestCliDetect:
    def test_detects_fixture_formats(self):
        runner = CliRunner()
        expected = {
            "petstore.yaml": "openapi-v3",
            "swagger_v2.json": "openapi-v2",
            "sample.postman.json": "postman",
            "sample.insomnia.json": "insomnia",
            "sample.apifox.json": "custom",
        }
        for name, fmt in expected.items():
            result = runner.invoke(main, ["detect", str(FIXTURES / name)])
            assert result.exit_code == 0, result.output
            assert result.output.strip() == fmt

    def test_unsupported_document(self):
        result = CliRunner().invoke(main, ["detect", str(FIXTURES / "requirements.txt")])
        assert result.exit_code != 0
        assert "Unsupported" in result.output


class TestCliGenCases:
    def test_from_openapi_document(self, tmp_path):
        output = tmp_path / "suite.json"
        result = CliRunner().invoke(main, ["gen-cases", str(FIXTURES / "petstore.yaml"), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Found 3 endpoints." in result.output
        suite = TestSuite.model_validate_json(output.read_text(encoding="utf-8"))
        assert [case.id for case in suite.test_cases] == ["tc-001", "tc-002", "tc-003"]
        assert all(case.steps[0].action == "request" for case in suite.test_cases)

    def test_from_requirements_text(self, tmp_path):
        output = tmp_path / "suite.json"
        result = CliRunner().invoke(main, ["gen-cases", str(FIXTURES / "requirements.txt"), "-o", str(output)])

        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["name"] == "requirements"
        assert len(data["test_cases"]) == 5
        assert data["test_cases"][0]["tags"] == ["login", "ui"]

    def test_max_cases_option(self, tmp_path):
        output = tmp_path / "suite.json"
        result = CliRunner().invoke(
            main, ["gen-cases", str(FIXTURES / "requirements.txt"), "-o", str(output), "--max-cases", "2"]
        )
        assert result.exit_code == 0, result.output
        assert len(json.loads(output.read_text(encoding="utf-8"))["test_cases"]) == 2

    def test_writes_script(self, tmp_path):
        output = tmp_path / "suite.json"
        script = tmp_path / "scripts" / "test_checkout.py"
        result = CliRunner().invoke(
            main,
            ["gen-cases", str(FIXTURES / "requirements.txt"), "-o", str(output), "--script", str(script)],
        )
        assert result.exit_code == 0, result.output
        code = script.read_text(encoding="utf-8")
        assert "from playwright.sync_api import Page" in code
        assert "page.goto(BASE_URL + '/login')" in code

    def test_forced_document_type_on_text_fails(self, tmp_path):
        result = CliRunner().invoke(
            main,
            ["gen-cases", str(FIXTURES / "requirements.txt"), "-o", str(tmp_path / "s.json"), "--source-type", "document"],
        )
        assert result.exit_code != 0
        assert "Error" in result.output
        assert not (tmp_path / "s.json").exists()

    @patch("e2e_test_agent.cli.TestCaseGenerator.from_oracle")
    def test_oracle_source(self, mock_oracle, tmp_path):
        mock_oracle.return_value = [
            TestCase(id="tc-001", steps=[TestStep(id="step-1", action="navigate", target="/")])
        ]
        output = tmp_path / "suite.json"
        result = CliRunner().invoke(
            main,
            ["gen-cases", str(FIXTURES / "requirements.txt"), "-o", str(output), "--source-type", "oracle"],
        )
        assert result.exit_code == 0, result.output
        mock_oracle.assert_called_once()
        assert mock_oracle.call_args.kwargs["test_type"] == "ui"


class TestCliRun:
    def test_passing_suite_writes_results_and_report(self, tmp_path):
        suite_path = tmp_path / "suite.json"
        suite = _write_suite(suite_path, {"http://api.test/health": 200})
        out = tmp_path / "results"

        with patch("e2e_test_agent.cli.HttpClient", _StubHttpClient):
            result = CliRunner().invoke(main, ["run", str(suite_path), "-o", str(out), "--retries", "0"])

        assert result.exit_code == 0, result.output
        assert "Test Results: 1 passed, 0 failed." in result.output
        results_files = list((out / "results").glob("*.json"))
        assert len(results_files) == 1
        data = json.loads(results_files[0].read_text(encoding="utf-8"))
        assert data["suite_id"] == suite.id
        assert len(list((out / "reports").glob("*.md"))) == 1

    def test_failing_suite_exits_nonzero_with_backend_error(self, tmp_path):
        suite_path = tmp_path / "suite.json"
        _write_suite(suite_path, {"http://api.test/broken": 500})

        def make_client(base_url="", timeout=None):
            return _StubHttpClient(
                base_url, timeout, responses={("GET", "http://api.test/broken"): HttpResponse(status=500, text="oops")}
            )

        with patch("e2e_test_agent.cli.HttpClient", make_client):
            result = CliRunner().invoke(
                main, ["run", str(suite_path), "-o", str(tmp_path / "out"), "--retries", "0"]
            )

        assert result.exit_code == 1
        assert "0 passed, 1 failed" in result.output
        assert "1 backend errors" in result.output

    @patch("e2e_test_agent.cli.PlaywrightDriver")
    def test_api_only_suite_does_not_start_browser(self, mock_driver, tmp_path):
        suite_path = tmp_path / "suite.json"
        _write_suite(suite_path, {"http://api.test/health": 200})
        with patch("e2e_test_agent.cli.HttpClient", _StubHttpClient):
            CliRunner().invoke(main, ["run", str(suite_path), "-o", str(tmp_path / "out")])
        mock_driver.assert_not_called()

    @patch("e2e_test_agent.cli.PlaywrightDriver")
    def test_ui_suite_uses_driver_and_closes_it(self, mock_driver_cls, tmp_path):
        driver = MagicMock()

        async def open_context():
            raise RuntimeError("no browser in tests")

        async def close():
            driver.closed = True

        driver.open_context = open_context
        driver.close = close
        mock_driver_cls.return_value = driver

        suite = TestSuite(name="ui", test_cases=[TestCase(id="tc-001", steps=[TestStep(id="step-1", action="navigate", target="/")])])
        suite_path = tmp_path / "suite.json"
        suite_path.write_text(suite.model_dump_json(), encoding="utf-8")

        with patch("e2e_test_agent.cli.HttpClient", _StubHttpClient):
            result = CliRunner().invoke(main, ["run", str(suite_path), "-o", str(tmp_path / "out"), "--retries", "0"])

        assert result.exit_code == 1
        assert driver.closed is True

    def test_failed_case_is_not_retried_by_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TEST_RETRIES", raising=False)
        get_settings.cache_clear()
        suite_path = tmp_path / "suite.json"
        _write_suite(suite_path, {"http://api.test/broken": 500})
        clients = []

        def make_client(base_url="", timeout=None):
            client = _StubHttpClient(
                base_url, timeout, responses={("GET", "http://api.test/broken"): HttpResponse(status=500)}
            )
            clients.append(client)
            return client

        try:
            with patch("e2e_test_agent.cli.HttpClient", make_client):
                result = CliRunner().invoke(main, ["run", str(suite_path), "-o", str(tmp_path / "out")])
        finally:
            get_settings.cache_clear()

        assert result.exit_code == 1
        assert len(clients[0].calls) == 1

    def test_malformed_suite_file(self, tmp_path):
        suite_path = tmp_path / "suite.json"
        suite_path.write_text(
            json.dumps({"name": "bad", "test_cases": [{"id": "tc-001", "steps": [{"id": "s1", "action": "hover", "target": "#x"}]}]}),
            encoding="utf-8",
        )
        result = CliRunner().invoke(main, ["run", str(suite_path), "-o", str(tmp_path / "out")])
        assert result.exit_code == 1
        assert "Invalid suite file" in result.output
        assert not isinstance(result.exception, ValidationError)
