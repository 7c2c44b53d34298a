"""Requirement splitting and keyword-driven classification for free text."""

import re
from dataclasses import dataclass
from typing import Callable

from .models import StepAction

NUMBERED = re.compile(r"^\s*\d+[.)]\s+(.*)$")
BULLET = re.compile(r"^\s*[-*•+]\s+(.*)$")


def split_requirements(text: str) -> list[str]:
    """Split free text into requirement units.

    Numbered-list items win over bullet items, which win over plain lines.
    Unmarked lines following a list item are folded into that item.
    Markdown headings are never requirements.
    """
    lines = text.splitlines()
    for marker in (NUMBERED, BULLET):
        if any(marker.match(line) for line in lines):
            return _split_by_marker(lines, marker)
    return [line.strip() for line in lines if line.strip() and not line.lstrip().startswith("#")]


def _split_by_marker(lines: list[str], marker: re.Pattern) -> list[str]:
    units: list[str] = []
    current: list[str] | None = None
    for line in lines:
        match = marker.match(line)
        if match:
            if current:
                units.append(" ".join(current))
            current = [match.group(1).strip()]
        elif current is not None and line.strip() and not line.lstrip().startswith("#"):
            current.append(line.strip())
        elif current is not None and not line.strip():
            units.append(" ".join(current))
            current = None
    if current:
        units.append(" ".join(current))
    return [u for u in units if u]


StepSpec = dict


@dataclass(frozen=True)
class RequirementRule:
    """One category: a predicate over the requirement and its step template."""

    name: str
    matches: Callable[[str], bool]
    build_steps: Callable[[str], list[StepSpec]]


def _keywords(pattern: str) -> Callable[[str], bool]:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda text: bool(compiled.search(text))


def _login_steps(requirement: str) -> list[StepSpec]:
    return [
        {"action": StepAction.NAVIGATE, "target": "/login", "description": "Open the login page"},
        {"action": StepAction.FILL, "target": 'input[name="username"]', "value": "testuser"},
        {"action": StepAction.FILL, "target": 'input[name="password"]', "value": "password123"},
        {"action": StepAction.CLICK, "target": 'button[type="submit"]'},
        {
            "action": StepAction.CUSTOM,
            "target": '() => document.body.innerText.includes("Welcome")',
            "expected_result": "User is logged in",
        },
    ]


def _search_steps(requirement: str) -> list[StepSpec]:
    return [
        {"action": StepAction.NAVIGATE, "target": "/"},
        {"action": StepAction.FILL, "target": 'input[type="search"]', "value": "test query"},
        {"action": StepAction.CLICK, "target": 'button[aria-label="Search"]'},
        {
            "action": StepAction.CUSTOM,
            "target": '() => document.querySelector(".search-results") !== null',
            "expected_result": "Search results are shown",
        },
    ]


def _form_steps(requirement: str) -> list[StepSpec]:
    return [
        {"action": StepAction.NAVIGATE, "target": "/form"},
        {"action": StepAction.FILL, "target": 'input[name="name"]', "value": "Test User"},
        {"action": StepAction.FILL, "target": 'input[name="email"]', "value": "test@example.com"},
        {"action": StepAction.CHECK, "target": 'input[type="checkbox"]'},
        {"action": StepAction.CLICK, "target": 'button[type="submit"]'},
        {
            "action": StepAction.CUSTOM,
            "target": '() => document.body.innerText.includes("Thank you")',
            "expected_result": "Form submission is confirmed",
        },
    ]


def _navigation_steps(requirement: str) -> list[StepSpec]:
    return [
        {"action": StepAction.NAVIGATE, "target": "/"},
        {"action": StepAction.CLICK, "target": 'button[aria-label="Menu"]'},
        {"action": StepAction.CLICK, "target": ".menu-item"},
        {
            "action": StepAction.CUSTOM,
            "target": '() => window.location.pathname !== "/"',
            "expected_result": "Navigation left the home page",
        },
    ]


def _default_steps(requirement: str) -> list[StepSpec]:
    words = re.findall(r"[a-z0-9]+", requirement.lower())
    keyword = words[0] if words else ""
    return [
        {"action": StepAction.NAVIGATE, "target": "/"},
        {"action": StepAction.CLICK, "target": f'a[href*="{keyword}"]'},
    ]


# Evaluated top to bottom; the first matching rule wins.
RULES: tuple[RequirementRule, ...] = (
    RequirementRule("login", _keywords(r"\blog-?in\b|\blog in\b|\bsign[- ]?in\b"), _login_steps),
    RequirementRule("search", _keywords(r"\bsearch"), _search_steps),
    RequirementRule("form", _keywords(r"\bforms?\b|\bsubmi(t|ssion)"), _form_steps),
    RequirementRule("navigation", _keywords(r"\bnavigat|\bmenus?\b"), _navigation_steps),
    RequirementRule("default", lambda text: True, _default_steps),
)


def classify(requirement: str, rules: tuple[RequirementRule, ...] = RULES) -> RequirementRule:
    """Return the first rule whose predicate matches `requirement`."""
    for rule in rules:
        if rule.matches(requirement):
            return rule
    raise ValueError("rule table has no catch-all entry")
