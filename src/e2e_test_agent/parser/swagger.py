"""OpenAPI / Swagger document parser.

Parses OpenAPI 3.x and Swagger 2.0 documents (JSON or YAML) into the
canonical ParsedApiDocument. Both versions are normalized identically.
"""

import re

import yaml

from e2e_test_agent.errors import DocumentParseError

from .base import ApiEndpoint, Param, ParsedApiDocument
from .detect import DocumentFormat
from .schema import resolve_refs

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "options", "head")

CONSTRAINT_KEYS = ("minimum", "maximum", "minLength", "maxLength", "pattern", "enum", "format")


class OpenApiParser:
    """Parser for OpenAPI v2 (Swagger) and v3 documents."""

    def parse(self, content: str) -> ParsedApiDocument:
        doc = load_document(content)
        return parse_openapi_document(doc)


def load_document(content: str) -> dict:
    """Load a JSON/YAML document and check that it is a mapping."""
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        location = f"line {mark.line + 1}" if mark is not None else "<root>"
        raise DocumentParseError(f"Invalid YAML/JSON: {getattr(e, 'problem', e)}", location) from e

    if not isinstance(doc, dict):
        raise DocumentParseError("Document root must be a mapping", "<root>")
    return doc


def parse_openapi_document(doc: dict) -> ParsedApiDocument:
    """Normalize an already-loaded OpenAPI v2/v3 mapping."""
    paths = doc.get("paths")
    if not isinstance(paths, dict):
        raise DocumentParseError("Missing required 'paths' object", "paths")

    is_v2 = "swagger" in doc
    info = doc.get("info") or {}

    endpoints = []
    for path, item in paths.items():
        if not isinstance(item, dict):
            raise DocumentParseError("Path item must be a mapping", f"paths.{path}")
        item = resolve_refs(item, doc)
        shared_params = item.get("parameters", [])

        for method, operation in item.items():
            if method.lower() not in HTTP_METHODS:
                continue
            if not isinstance(operation, dict):
                raise DocumentParseError("Operation must be a mapping", f"paths.{path}.{method}")
            endpoints.append(_parse_operation(doc, path, method, operation, shared_params, is_v2))

    schemas = doc.get("definitions") if is_v2 else (doc.get("components") or {}).get("schemas")

    return ParsedApiDocument(
        title=str(info.get("title", "")),
        version=str(info.get("version", "")),
        description=info.get("description", "") or "",
        base_url=_v2_base_url(doc) if is_v2 else _v3_base_url(doc),
        endpoints=tuple(endpoints),
        schemas=resolve_refs(schemas or {}, doc),
        source_format=(DocumentFormat.OPENAPI_V2 if is_v2 else DocumentFormat.OPENAPI_V3).value,
    )


def _parse_operation(
    doc: dict, path: str, method: str, operation: dict, shared_params: list, is_v2: bool
) -> ApiEndpoint:
    raw_params = _merge_parameters(shared_params, operation.get("parameters", []))

    if is_v2:
        request_schema, request_examples, content_type = _v2_request(doc, operation, raw_params)
        response_schemas, response_examples = _v2_responses(operation.get("responses", {}))
    else:
        request_schema, request_examples, content_type = _v3_request(operation.get("requestBody"))
        response_schemas, response_examples = _v3_responses(operation.get("responses", {}))

    params = _parse_parameters([p for p in raw_params if p.get("in") not in ("body", "formData")])

    return ApiEndpoint(
        method=method.upper(),
        path=path,
        summary=operation.get("summary", "") or "",
        description=operation.get("description", "") or "",
        parameters=params,
        request_schema=request_schema,
        response_schemas=response_schemas,
        request_examples=request_examples,
        response_examples=response_examples,
        headers={p.name: "" if p.default is None else str(p.default) for p in params if p.location == "header"},
        tags=operation.get("tags", []),
        content_type=content_type,
    )


def _merge_parameters(shared: list, own: list) -> list[dict]:
    merged: dict[tuple, dict] = {}
    for p in list(shared) + list(own):
        if isinstance(p, dict) and "name" in p:
            merged[(p["name"], p.get("in", "query"))] = p
    return list(merged.values())


def _parse_parameters(params: list[dict]) -> list[Param]:
    result = []
    for p in params:
        # v3 keeps type info under `schema`, v2 inlines it on the parameter.
        schema = p.get("schema") or p
        constraints = {}
        for key in CONSTRAINT_KEYS:
            if key in schema:
                constraints[key] = schema[key]

        result.append(
            Param(
                name=p["name"],
                location=p.get("in", "query"),
                required=p.get("required", False),
                param_type=schema.get("type", "string"),
                description=p.get("description", "") or "",
                constraints=constraints,
                default=schema.get("default", p.get("example")),
            )
        )
    return result


def _pick_media(content: dict) -> str | None:
    if not content:
        return None
    for media in content:
        if "json" in media:
            return media
    if "multipart/form-data" in content:
        return "multipart/form-data"
    return next(iter(content))


def _media_examples(media: dict) -> list:
    if media.get("examples"):
        return [ex.get("value") if isinstance(ex, dict) else ex for ex in media["examples"].values()]
    if "example" in media:
        return [media["example"]]
    return []


def _v3_request(body: dict | None) -> tuple[dict | None, list, str]:
    if not body:
        return None, [], "application/json"
    content = body.get("content", {})
    media_type = _pick_media(content)
    if media_type is None:
        return None, [], "application/json"

    examples = []
    for media in content.values():
        examples.extend(_media_examples(media))
    return content[media_type].get("schema"), examples, media_type


def _v3_responses(responses: dict) -> tuple[dict, dict]:
    schemas: dict = {}
    examples: dict = {}
    for status_code, resp in responses.items():
        code = str(status_code)
        content = (resp or {}).get("content") or {}
        media_type = _pick_media(content)
        schemas[code] = content[media_type].get("schema") if media_type else None
        found = []
        for media in content.values():
            found.extend(_media_examples(media))
        if found:
            examples[code] = found
    return schemas, examples


def _v2_request(doc: dict, operation: dict, params: list[dict]) -> tuple[dict | None, list, str]:
    consumes = operation.get("consumes") or doc.get("consumes") or ["application/json"]
    content_type = next((c for c in consumes if "json" in c), consumes[0])

    for p in params:
        if p.get("in") == "body":
            schema = p.get("schema")
            examples = []
            if "x-example" in p:
                examples.append(p["x-example"])
            elif isinstance(schema, dict) and "example" in schema:
                examples.append(schema["example"])
            return schema, examples, content_type

    form = [p for p in params if p.get("in") == "formData"]
    if form:
        schema = {
            "type": "object",
            "properties": {p["name"]: {"type": p.get("type", "string")} for p in form},
            "required": [p["name"] for p in form if p.get("required")],
        }
        if any(p.get("type") == "file" for p in form):
            content_type = "multipart/form-data"
        return schema, [], content_type

    return None, [], content_type


def _v2_responses(responses: dict) -> tuple[dict, dict]:
    schemas: dict = {}
    examples: dict = {}
    for status_code, resp in responses.items():
        code = str(status_code)
        resp = resp or {}
        schemas[code] = resp.get("schema")
        if resp.get("examples"):
            examples[code] = list(resp["examples"].values())
    return schemas, examples


def _v3_base_url(doc: dict) -> str:
    servers = doc.get("servers") or []
    if not servers:
        return ""
    server = servers[0]
    url = server.get("url", "")
    for name, variable in (server.get("variables") or {}).items():
        url = re.sub(r"\{" + re.escape(name) + r"\}", str(variable.get("default", "")), url)
    return url


def _v2_base_url(doc: dict) -> str:
    host = doc.get("host")
    base_path = doc.get("basePath", "")
    if not host:
        return base_path
    scheme = (doc.get("schemes") or ["https"])[0]
    return f"{scheme}://{host}{base_path}"
