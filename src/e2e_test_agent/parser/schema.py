"""JSON Schema helpers shared by the parsers and the test case generator."""

import copy
from datetime import date, datetime, timezone
from typing import Any


def resolve_refs(node: Any, root: dict, _seen: frozenset = frozenset()) -> Any:
    """Return a copy of `node` with local `$ref` pointers inlined.

    Only document-local references (`#/...`) are followed. A reference
    that points back into its own expansion is left as-is.
    """
    if isinstance(node, list):
        return [resolve_refs(item, root, _seen) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/"):
        if ref in _seen:
            return dict(node)
        target = _lookup(root, ref)
        if target is None:
            return dict(node)
        return resolve_refs(target, root, _seen | {ref})

    return {key: resolve_refs(value, root, _seen) for key, value in node.items()}


def _lookup(root: dict, ref: str) -> Any:
    current: Any = root
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return copy.deepcopy(current)


def infer_schema(value: Any) -> dict:
    """Infer a JSON schema from a sample JSON value."""
    if value is None:
        return {"type": "null"}
    if isinstance(value, bool):
        return {"type": "boolean"}
    if isinstance(value, int):
        return {"type": "integer"}
    if isinstance(value, float):
        return {"type": "number"}
    if isinstance(value, str):
        return {"type": "string"}
    if isinstance(value, list):
        return {"type": "array", "items": infer_schema(value[0]) if value else {}}
    if isinstance(value, dict):
        return {
            "type": "object",
            "properties": {key: infer_schema(item) for key, item in value.items()},
        }
    return {}


def sample_from_schema(schema: dict | None, _depth: int = 0) -> Any:
    """Build a placeholder value that satisfies the shape of `schema`."""
    if not schema or _depth > 8:
        return None

    for key in ("example", "default"):
        if key in schema:
            return schema[key]
    if schema.get("enum"):
        return schema["enum"][0]

    for key in ("allOf", "oneOf", "anyOf"):
        if schema.get(key):
            if key == "allOf":
                merged: dict = {}
                for part in schema[key]:
                    value = sample_from_schema(part, _depth + 1)
                    if isinstance(value, dict):
                        merged.update(value)
                return merged
            return sample_from_schema(schema[key][0], _depth + 1)

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        schema_type = next((t for t in schema_type if t != "null"), None)
    if schema_type is None and "properties" in schema:
        schema_type = "object"

    if schema_type == "object":
        return {
            name: sample_from_schema(prop, _depth + 1)
            for name, prop in (schema.get("properties") or {}).items()
        }
    if schema_type == "array":
        items = schema.get("items")
        return [sample_from_schema(items, _depth + 1)] if items else []
    if schema_type == "string":
        return _sample_string(schema.get("format"))
    if schema_type in ("integer", "number"):
        if "minimum" in schema:
            return schema["minimum"]
        return 0
    if schema_type == "boolean":
        return False
    return None


def _sample_string(fmt: str | None) -> str:
    if fmt == "date-time":
        return datetime.now(timezone.utc).isoformat()
    if fmt == "date":
        return date.today().isoformat()
    if fmt == "email":
        return "user@example.com"
    if fmt in ("uri", "url"):
        return "https://example.com"
    if fmt == "uuid":
        return "00000000-0000-0000-0000-000000000000"
    return "string"
