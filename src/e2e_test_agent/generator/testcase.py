"""Test case generator: turns parsed API documents or free-text requirements into test cases."""

from loguru import logger

from e2e_test_agent.errors import OracleResponseError
from e2e_test_agent.llm import LlmClient
from e2e_test_agent.parser.base import ApiEndpoint, ParsedApiDocument
from e2e_test_agent.parser.schema import sample_from_schema

from .models import Assertion, AssertionType, Operator, StepAction, TestCase, TestStep, TestSuite
from .oracle import SYSTEM_PROMPT, build_prompt, default_case, parse_oracle_output
from .requirements import RULES, RequirementRule, classify, split_requirements

DEFAULT_MAX_CASES = 10


def case_id(number: int) -> str:
    return f"tc-{number:03d}"


class TestCaseGenerator:
    """Synthesizes TestCase lists from documents, requirement text, or the LLM oracle."""

    __test__ = False

    def __init__(
        self,
        model: str | None = None,
        max_cases: int | None = None,
        client: LlmClient | None = None,
        rules: tuple[RequirementRule, ...] = RULES,
    ):
        self.model = model
        self.max_cases = max_cases if max_cases is not None else DEFAULT_MAX_CASES
        self.rules = rules
        self._client = client

    @property
    def client(self) -> LlmClient:
        if self._client is None:
            self._client = LlmClient(model=self.model)
        return self._client

    # ---- documents ----

    def from_document(self, doc: ParsedApiDocument) -> list[TestCase]:
        """One case per endpoint, each a single request step with assertions."""
        cases = []
        for number, endpoint in enumerate(doc.endpoints, start=1):
            step = self._request_step(doc.base_url, endpoint)
            description = endpoint.summary or f"{endpoint.method.upper()} {endpoint.path}"
            tags = list(dict.fromkeys([*endpoint.tags, "api"]))
            cases.append(TestCase(id=case_id(number), description=description, steps=[step], tags=tags))
        return cases

    def _request_step(self, base_url: str, endpoint: ApiEndpoint) -> TestStep:
        if endpoint.request_examples:
            body = endpoint.request_examples[0]
        else:
            body = sample_from_schema(endpoint.request_schema)

        headers = dict(endpoint.headers)
        if body is not None and endpoint.content_type and not _has_header(headers, "content-type"):
            headers["Content-Type"] = endpoint.content_type

        status = endpoint.success_status() or 200
        assertions = [Assertion(type=AssertionType.STATUS, operator=Operator.EQ, expected=status)]
        schema = endpoint.response_schemas.get(str(status))
        if schema:
            assertions.append(Assertion(type=AssertionType.BODY, operator=Operator.NE, expected=None))
            for prop in schema.get("required", []) if schema.get("type", "object") == "object" else []:
                assertions.append(
                    Assertion(type=AssertionType.JSON_PATH, target="$", operator=Operator.CONTAINS, expected=prop)
                )

        return TestStep(
            id="step-1",
            action=StepAction.REQUEST,
            target=base_url.rstrip("/") + endpoint.path,
            method=endpoint.method.upper(),
            headers=headers,
            body=body,
            assertions=assertions,
            description=f"{endpoint.method.upper()} {endpoint.path}",
            expected_result=f"Responds with {status}",
        )

    # ---- requirement text ----

    def from_text(self, text: str) -> list[TestCase]:
        """Split requirements and map each to the steps of its matching category."""
        units = split_requirements(text)
        if len(units) > self.max_cases:
            logger.debug(f"Dropping {len(units) - self.max_cases} requirements beyond the limit of {self.max_cases}")
            units = units[: self.max_cases]

        cases = []
        for number, requirement in enumerate(units, start=1):
            rule = classify(requirement, self.rules)
            steps = [
                TestStep(id=f"step-{index}", **spec)
                for index, spec in enumerate(rule.build_steps(requirement), start=1)
            ]
            cases.append(TestCase(id=case_id(number), description=requirement, steps=steps, tags=[rule.name, "ui"]))
        return cases

    # ---- oracle ----

    def from_oracle(self, text: str, test_type: str = "ui", api_spec: str | None = None) -> list[TestCase]:
        """Ask the LLM for cases; fall back to a single default case on bad output."""
        prompt = build_prompt(text, test_type, api_spec)
        try:
            response = self.client.generate(prompt, system=SYSTEM_PROMPT)
            _, cases = parse_oracle_output(response)
        except OracleResponseError as e:
            logger.warning(f"Unusable oracle output, using default {test_type} case: {e}")
            return [default_case(test_type)]
        except Exception as e:
            logger.warning(f"Oracle call failed, using default {test_type} case: {e}")
            return [default_case(test_type)]
        return renumber(cases)

    def build_suite(self, name: str, cases: list[TestCase], description: str = "") -> TestSuite:
        return TestSuite(name=name, description=description, test_cases=cases)


def renumber(cases: list[TestCase]) -> list[TestCase]:
    """Assign fresh sequential IDs when any case ID is missing or repeated."""
    ids = [case.id for case in cases]
    if all(ids) and len(set(ids)) == len(ids):
        return cases
    return [case.model_copy(update={"id": case_id(number)}) for number, case in enumerate(cases, start=1)]


def _has_header(headers: dict[str, str], name: str) -> bool:
    return any(key.lower() == name for key in headers)
