"""Auto-detect API documentation format."""

import json
from enum import Enum
from pathlib import Path

from e2e_test_agent.errors import UnsupportedFormatError

YAML_EXTENSIONS = (".yaml", ".yml")

CUSTOM_MARKERS = ("apifoxExtensions", "apifoxProject")
CUSTOM_MARKER_PREFIX = "x-apifox"


class DocumentFormat(str, Enum):
    """Closed set of supported document formats."""

    OPENAPI_V2 = "openapi-v2"
    OPENAPI_V3 = "openapi-v3"
    POSTMAN = "postman"
    INSOMNIA = "insomnia"
    CUSTOM = "custom"


def detect_format(text: str, filename: str | None = None) -> DocumentFormat:
    """Detect the format of an API document from its content and file name.

    JSON documents are classified by their top-level keys. Non-JSON
    documents with a YAML extension are scanned for literal version markers.

    Raises UnsupportedFormatError when no rule matches.
    """
    checks: list[str] = []

    try:
        data = json.loads(text)
    except ValueError:
        data = None
        checks.append("json: content is not valid JSON")

    if isinstance(data, dict):
        fmt = _detect_json(data, checks)
        if fmt is not None:
            return fmt
    elif data is not None:
        checks.append("json: top-level value is not an object")

    if filename and filename.lower().endswith(YAML_EXTENSIONS):
        fmt = _detect_yaml_markers(text)
        if fmt is not None:
            return fmt
        checks.append("yaml: no 'openapi: 3' or 'swagger: 2' marker")
    else:
        checks.append("yaml: file extension is not .yaml/.yml")

    raise UnsupportedFormatError(checks)


def detect_file_format(file_path: Path) -> DocumentFormat:
    """Read `file_path` and detect its format."""
    text = file_path.read_text(encoding="utf-8")
    return detect_format(text, file_path.name)


def _detect_json(data: dict, checks: list[str]) -> DocumentFormat | None:
    if data.get("swagger") == "2.0":
        return DocumentFormat.OPENAPI_V2
    checks.append("openapi-v2: swagger == '2.0'")

    openapi = data.get("openapi")
    if isinstance(openapi, str) and openapi.startswith("3."):
        return DocumentFormat.OPENAPI_V3
    checks.append("openapi-v3: openapi starts with '3.'")

    if "info" in data and isinstance(data.get("item"), list):
        return DocumentFormat.POSTMAN
    checks.append("postman: info + item[]")

    if data.get("_type") == "export" and "__export_format" in data:
        return DocumentFormat.INSOMNIA
    checks.append("insomnia: _type == 'export' + __export_format")

    if any(k in data for k in CUSTOM_MARKERS) or any(k.startswith(CUSTOM_MARKER_PREFIX) for k in data):
        return DocumentFormat.CUSTOM
    checks.append("custom: vendor marker field")

    return None


def _detect_yaml_markers(text: str) -> DocumentFormat | None:
    for raw in text.splitlines():
        line = raw.strip().replace("'", "").replace('"', "")
        if line.startswith("openapi: 3"):
            return DocumentFormat.OPENAPI_V3
        if line.startswith("swagger: 2"):
            return DocumentFormat.OPENAPI_V2
    return None
