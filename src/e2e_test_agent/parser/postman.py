"""Postman Collection v2.x parser.

Parses Postman exported JSON into the canonical ParsedApiDocument.
"""

import json
import re
from urllib.parse import urlsplit

from e2e_test_agent.errors import DocumentParseError

from .base import ApiEndpoint, Param, ParsedApiDocument
from .detect import DocumentFormat
from .schema import infer_schema

PATH_VAR = re.compile(r"^:(\w+)$")
TEMPLATE_VAR = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class PostmanParser:
    """Parser for Postman collections."""

    def parse(self, content: str) -> ParsedApiDocument:
        try:
            collection = json.loads(content)
        except ValueError as e:
            raise DocumentParseError(f"Invalid JSON: {e}", "<root>") from e

        if not isinstance(collection, dict):
            raise DocumentParseError("Collection root must be an object", "<root>")
        if not isinstance(collection.get("item"), list):
            raise DocumentParseError("Missing required 'item' array", "item")

        info = collection.get("info") or {}
        variables = {v.get("key"): v.get("value") for v in collection.get("variable", []) if isinstance(v, dict)}

        endpoints: list[ApiEndpoint] = []
        _parse_items(collection["item"], endpoints, [])

        return ParsedApiDocument(
            title=info.get("name", "Postman Collection"),
            version=str(info.get("version", "")),
            description=_text(info.get("description")),
            base_url=str(variables.get("baseUrl") or variables.get("base_url") or ""),
            endpoints=tuple(endpoints),
            source_format=DocumentFormat.POSTMAN.value,
        )


def _parse_items(items: list[dict], endpoints: list[ApiEndpoint], folders: list[str]) -> None:
    """Recursively parse items (supports folders)."""
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise DocumentParseError("Item must be an object", "item" + "".join(f"[{f}]" for f in folders + [str(index)]))
        if "item" in item:
            _parse_items(item["item"], endpoints, folders + [item.get("name", str(index))])
        elif "request" in item:
            endpoints.append(_parse_request(item, folders))


def _parse_request(item: dict, folders: list[str]) -> ApiEndpoint:
    req = item["request"]
    if isinstance(req, str):
        req = {"url": req, "method": "GET"}
    method = req.get("method", "GET").upper()
    url = req.get("url", {})
    if isinstance(url, str):
        url = _split_raw_url(url)
    elif "path" not in url and url.get("raw"):
        url = {**_split_raw_url(url["raw"]), **url}

    path = _normalize_path(url)
    params = _parse_query_params(url.get("query", []))
    params += [
        Param(name=v["key"], location="path", required=True, description=_text(v.get("description")))
        for v in url.get("variable", [])
        if isinstance(v, dict) and "key" in v
    ]
    headers = {
        h["key"]: str(h.get("value", ""))
        for h in req.get("header", [])
        if isinstance(h, dict) and "key" in h and not h.get("disabled")
    }
    body, content_type = _parse_body(req.get("body"), headers)
    response_schemas, response_examples = _parse_responses(item.get("response", []))

    return ApiEndpoint(
        method=method,
        path=path,
        summary=item.get("name", ""),
        description=_text(req.get("description")),
        parameters=params,
        request_schema=infer_schema(body) if body is not None else None,
        response_schemas=response_schemas,
        request_examples=[body] if body is not None else [],
        response_examples=response_examples,
        headers=headers,
        tags=folders[:1],
        content_type=content_type,
    )


def _split_raw_url(raw: str) -> dict:
    stripped = TEMPLATE_VAR.sub("", raw, count=1) if raw.startswith("{{") else raw
    parts = urlsplit(stripped if "://" in stripped or stripped.startswith("/") else "/" + stripped)
    query = [
        {"key": pair.split("=", 1)[0], "value": pair.split("=", 1)[1] if "=" in pair else ""}
        for pair in parts.query.split("&")
        if pair
    ]
    return {"raw": raw, "path": [p for p in parts.path.split("/") if p], "query": query}


def _normalize_path(url: dict) -> str:
    segments = url.get("path", [])
    if isinstance(segments, str):
        segments = [s for s in segments.split("/") if s]
    normalized = []
    for segment in segments:
        match = PATH_VAR.match(segment)
        normalized.append("{" + match.group(1) + "}" if match else segment)
    return "/" + "/".join(normalized)


def _parse_query_params(query: list[dict]) -> list[Param]:
    return [
        Param(
            name=q["key"],
            location="query",
            required=False,
            param_type="string",
            description=_text(q.get("description")),
            default=q.get("value"),
        )
        for q in query
        if isinstance(q, dict) and "key" in q
    ]


def _parse_body(body: dict | None, headers: dict[str, str]) -> tuple[object, str]:
    content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), "application/json")
    if not body:
        return None, content_type

    mode = body.get("mode")
    if mode == "raw":
        raw = body.get("raw", "")
        if not raw:
            return None, content_type
        try:
            return json.loads(raw), content_type
        except ValueError:
            return raw, content_type if "json" not in content_type else "text/plain"
    if mode == "formdata":
        return {f["key"]: f.get("value", "") for f in body.get("formdata", []) if "key" in f}, "multipart/form-data"
    if mode == "urlencoded":
        fields = body.get("urlencoded", [])
        return {f["key"]: f.get("value", "") for f in fields if "key" in f}, "application/x-www-form-urlencoded"
    return None, content_type


def _parse_responses(responses: list[dict]) -> tuple[dict, dict]:
    if not responses:
        return {"200": None}, {}

    schemas: dict = {}
    examples: dict = {}
    for resp in responses:
        code = str(resp.get("code", 200))
        raw = resp.get("body")
        if raw is None or raw == "":
            schemas.setdefault(code, None)
            continue
        try:
            value = json.loads(raw)
        except ValueError:
            value = raw
        schemas[code] = infer_schema(value)
        examples.setdefault(code, []).append(value)
    return schemas, examples


def _text(value) -> str:
    """Postman descriptions may be plain strings or {content, type} objects."""
    if isinstance(value, dict):
        return value.get("content", "") or ""
    return value or ""
