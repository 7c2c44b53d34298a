"""Insomnia export (format 4) parser."""

import json
import re

from e2e_test_agent.errors import DocumentParseError

from .base import ApiEndpoint, Param, ParsedApiDocument
from .detect import DocumentFormat
from .schema import infer_schema

# Leading environment reference such as `{{ _.base_url }}` or `{{base_url}}`.
BASE_URL_TEMPLATE = re.compile(r"^\{\{\s*(?:_\.)?\w+\s*\}\}")


class InsomniaParser:
    """Parser for Insomnia v4 exports."""

    def parse(self, content: str) -> ParsedApiDocument:
        try:
            export = json.loads(content)
        except ValueError as e:
            raise DocumentParseError(f"Invalid JSON: {e}", "<root>") from e

        if not isinstance(export, dict):
            raise DocumentParseError("Export root must be an object", "<root>")
        resources = export.get("resources")
        if not isinstance(resources, list):
            raise DocumentParseError("Missing required 'resources' array", "resources")

        title = ""
        base_url = ""
        endpoints = []
        for index, resource in enumerate(resources):
            if not isinstance(resource, dict):
                raise DocumentParseError("Resource must be an object", f"resources[{index}]")
            kind = resource.get("_type")
            if kind == "workspace" and not title:
                title = resource.get("name", "")
            elif kind == "environment" and not base_url:
                data = resource.get("data") or {}
                base_url = str(data.get("base_url") or data.get("baseUrl") or "")
            elif kind == "request":
                endpoints.append(_parse_request(resource, index))

        return ParsedApiDocument(
            title=title or "Insomnia Export",
            version=str(export.get("__export_format", "")),
            base_url=base_url,
            endpoints=tuple(endpoints),
            source_format=DocumentFormat.INSOMNIA.value,
        )


def _parse_request(resource: dict, index: int) -> ApiEndpoint:
    url = resource.get("url")
    if not isinstance(url, str):
        raise DocumentParseError("Request is missing 'url'", f"resources[{index}].url")

    path = BASE_URL_TEMPLATE.sub("", url)
    if "://" in path:
        path = "/" + path.split("://", 1)[1].partition("/")[2]
    path = path.split("?", 1)[0] or "/"
    if not path.startswith("/"):
        path = "/" + path

    headers = {
        h["name"]: str(h.get("value", ""))
        for h in resource.get("headers", [])
        if isinstance(h, dict) and "name" in h and not h.get("disabled")
    }
    params = [
        Param(name=p["name"], location="query", default=p.get("value"), description=p.get("description", ""))
        for p in resource.get("parameters", [])
        if isinstance(p, dict) and "name" in p and not p.get("disabled")
    ]

    body = resource.get("body") or {}
    mime_type = body.get("mimeType") or "application/json"
    example = None
    if body.get("text"):
        try:
            example = json.loads(body["text"])
        except ValueError:
            example = body["text"]
    elif body.get("params"):
        example = {p["name"]: p.get("value", "") for p in body["params"] if "name" in p}

    return ApiEndpoint(
        method=resource.get("method", "GET").upper(),
        path=path,
        summary=resource.get("name", ""),
        description=resource.get("description", "") or "",
        parameters=params,
        request_schema=infer_schema(example) if example is not None else None,
        response_schemas={"200": None},
        request_examples=[example] if example is not None else [],
        headers=headers,
        content_type=mime_type,
    )
