"""Vendor-custom (Apifox) export parser.

Apifox exports are OpenAPI documents decorated with vendor extension
fields. The extensions are stripped and the rest is normalized through
the OpenAPI parser.
"""

from typing import Any

from e2e_test_agent.errors import DocumentParseError

from .base import ParsedApiDocument
from .detect import CUSTOM_MARKER_PREFIX, CUSTOM_MARKERS, DocumentFormat
from .swagger import load_document, parse_openapi_document

VENDOR_KEYS = CUSTOM_MARKERS + ("apifoxExtension",)


class CustomParser:
    """Parser for Apifox-style vendor documents."""

    def parse(self, content: str) -> ParsedApiDocument:
        doc = strip_vendor_extensions(load_document(content))
        if "paths" not in doc:
            raise DocumentParseError("Vendor document has no 'paths' object", "paths")
        parsed = parse_openapi_document(doc)
        return parsed.model_copy(update={"source_format": DocumentFormat.CUSTOM.value})


def strip_vendor_extensions(node: Any) -> Any:
    """Return a copy of `node` without vendor extension keys, at any depth."""
    if isinstance(node, list):
        return [strip_vendor_extensions(item) for item in node]
    if isinstance(node, dict):
        return {
            key: strip_vendor_extensions(value)
            for key, value in node.items()
            if key not in VENDOR_KEYS and not key.startswith(CUSTOM_MARKER_PREFIX)
        }
    return node
