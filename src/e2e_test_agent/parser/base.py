"""Canonical data models for parsed API documentation.

All parsers (OpenAPI v2/v3, Postman, Insomnia, vendor custom) convert
their input into these standard models for downstream processing.
Models are frozen: a parsed document is never mutated after parse.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class Param(BaseModel):
    """A single API parameter (query, path, header, cookie, or body)."""

    model_config = ConfigDict(frozen=True)

    name: str
    location: str  # query / path / header / cookie / body
    required: bool = False
    param_type: str = "string"  # string / integer / boolean / array / object
    description: str = ""
    constraints: dict = {}  # minimum, maximum, pattern, enum, etc.
    default: Any = None


class ApiEndpoint(BaseModel):
    """A single API endpoint with all its metadata."""

    model_config = ConfigDict(frozen=True)

    method: str  # GET / POST / PUT / DELETE / PATCH / OPTIONS / HEAD
    path: str  # /api/users/{id}
    summary: str = ""
    description: str = ""
    parameters: list[Param] = []
    request_schema: dict | None = None
    response_schemas: dict[str, dict | None] = {}  # {status_code: schema}
    request_examples: list[Any] = []
    response_examples: dict[str, list[Any]] = {}  # {status_code: [example]}
    headers: dict[str, str] = {}
    tags: list[str] = []
    content_type: str = "application/json"

    @property
    def key(self) -> tuple[str, str]:
        return self.method.upper(), self.path

    def success_status(self) -> int | None:
        """Return the first documented 2xx status code, if any."""
        for code in self.response_schemas:
            if str(code).startswith("2") and str(code).isdigit():
                return int(code)
        return None


class ParsedApiDocument(BaseModel):
    """A parsed API surface, independent of its source format."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    version: str = ""
    description: str = ""
    base_url: str = ""
    endpoints: tuple[ApiEndpoint, ...] = ()
    schemas: dict[str, Any] = {}
    source_format: str = ""

    def find(self, path: str, method: str) -> ApiEndpoint | None:
        """Look up an endpoint by (path, method); the last definition wins."""
        match = None
        for endpoint in self.endpoints:
            if endpoint.key == (method.upper(), path):
                match = endpoint
        return match
