"""Markdown rendering of an error report."""

import json

from .models import ErrorReport


def render_markdown(report: ErrorReport) -> str:
    parts = [
        "# Test Error Report",
        "",
        "## Summary",
        report.summary,
        "",
        f"## Frontend Errors ({len(report.frontend_errors)})",
    ]
    for error in report.frontend_errors:
        parts.append("")
        parts.append(f"### Error: {error.message}")
        if error.test_case_id:
            parts.append(f"**Test case:** {error.test_case_id}")
        if error.location:
            parts.append(f"**Location:** {error.location}")
        parts.append(f"**Timestamp:** {error.timestamp.isoformat()}")
        if error.stack:
            parts.extend(["```", error.stack, "```"])

    parts.append("")
    parts.append(f"## Backend Errors ({len(report.backend_errors)})")
    for error in report.backend_errors:
        parts.append("")
        parts.append(f"### {error.method} {error.url} - {error.status} {error.status_text}".rstrip())
        if error.test_case_id:
            parts.append(f"**Test case:** {error.test_case_id}")
        parts.append(f"**Timestamp:** {error.timestamp.isoformat()}")
        if error.request and error.request.post_data:
            parts.extend(["", "#### Request Payload:", "```json", _pretty(error.request.post_data), "```"])
        if error.response.body:
            parts.extend(["", "#### Response Body:", "```json", _pretty(error.response.body), "```"])

    if report.pending_requests:
        parts.append("")
        parts.append(f"## Pending Requests ({len(report.pending_requests)})")
        parts.append("")
        for request in report.pending_requests:
            owner = f" ({request.test_case_id})" if request.test_case_id else ""
            parts.append(f"- {request.method} {request.url}{owner}")

    return "\n".join(parts) + "\n"


def _pretty(text: str) -> str:
    try:
        return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
    except ValueError:
        return text
