"""Script generator: maps test steps to Playwright primitive calls in pytest files.

Each step becomes exactly one line calling a Playwright primitive; no
other script logic is generated.
"""

import ast
import re

from e2e_test_agent.errors import AgentError

from .models import StepAction, TestCase, TestStep

HEADER = '''"""Generated Playwright tests."""

from playwright.sync_api import Page

BASE_URL = {base_url!r}
'''


class ScriptGenerator:
    """Renders test cases as a pytest + Playwright module."""

    def __init__(self, base_url: str = ""):
        self.base_url = base_url.rstrip("/")

    def render(self, cases: list[TestCase], filename: str = "test_generated.py") -> dict[str, str]:
        """Return {filename: code}; raises AgentError if it is not a runnable test module."""
        parts = [HEADER.format(base_url=self.base_url)]
        for case in cases:
            parts.append(self._render_case(case))
        code = "\n".join(parts)

        problems = check_script(code, filename)
        if problems:
            raise AgentError(f"Generated script {filename} is invalid: " + "; ".join(problems))
        return {filename: code}

    def _render_case(self, case: TestCase) -> str:
        lines = [
            "",
            f"def {_function_name(case)}(page: Page):",
            f"    {(case.description or case.id)!r}",
        ]
        for step in case.steps:
            lines.append(f"    {render_step(step)}")
        return "\n".join(lines) + "\n"


def render_step(step: TestStep) -> str:
    """The single Playwright call line for `step`."""
    target = step.target
    if step.action == StepAction.NAVIGATE:
        if target.startswith(("http://", "https://")):
            return f"page.goto({target!r})"
        return f"page.goto(BASE_URL + {target!r})"
    if step.action == StepAction.CLICK:
        return f"page.click({target!r})"
    if step.action == StepAction.FILL:
        return f"page.fill({target!r}, {str(step.value or '')!r})"
    if step.action == StepAction.CHECK:
        return f"page.check({target!r})"
    if step.action == StepAction.SELECT:
        return f"page.select_option({target!r}, {str(step.value or '')!r})"
    if step.action == StepAction.CUSTOM:
        return f"assert page.evaluate({target!r})"
    # request
    status = next((a.expected for a in step.assertions if a.type.value == "status"), None)
    call = f"page.request.fetch({target!r}, method={step.method.upper()!r}, headers={step.headers!r}, data={step.body!r})"
    if status is not None:
        return f"assert {call}.status == {status!r}"
    return call


def _function_name(case: TestCase) -> str:
    slug = re.sub(r"\W+", "_", case.id.lower()).strip("_")
    return f"test_{slug or 'case'}"



def check_script(code: str, filename: str = "test_generated.py") -> list[str]:
    """Problems that would keep pytest from running the generated module.

    The module must parse, and every test function must take the `page`
    fixture as its only argument.
    """
    try:
        tree = ast.parse(code, filename=filename)
    except SyntaxError as e:
        return [f"SyntaxError: {e.msg} (line {e.lineno})"]

    problems = []
    seen = set()
    for node in tree.body:
        if not isinstance(node, ast.FunctionDef) or not node.name.startswith("test_"):
            continue
        if node.name in seen:
            problems.append(f"{node.name} is defined more than once")
        seen.add(node.name)
        args = [arg.arg for arg in node.args.args]
        if args != ["page"]:
            problems.append(f"{node.name} must take the page fixture, got ({', '.join(args)})")
    return problems
