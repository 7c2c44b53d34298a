"""Explicit mapping from document format to parser."""

from pathlib import Path
from typing import Protocol

from loguru import logger

from e2e_test_agent.errors import NoParserRegisteredError

from .base import ParsedApiDocument
from .custom import CustomParser
from .detect import DocumentFormat, detect_format
from .insomnia import InsomniaParser
from .postman import PostmanParser
from .swagger import OpenApiParser


class DocumentParser(Protocol):
    def parse(self, content: str) -> ParsedApiDocument: ...


class ParserRegistry:
    """Maps each DocumentFormat to a parser.

    Construct one per process or session and pass it where needed; there
    is no global instance.
    """

    def __init__(self):
        self._parsers: dict[DocumentFormat, DocumentParser] = {}

    def register(self, fmt: DocumentFormat | str, parser: DocumentParser) -> None:
        self._parsers[DocumentFormat(fmt)] = parser

    def get(self, fmt: DocumentFormat | str) -> DocumentParser:
        try:
            return self._parsers[DocumentFormat(fmt)]
        except (KeyError, ValueError):
            raise NoParserRegisteredError(str(getattr(fmt, "value", fmt))) from None

    def formats(self) -> list[DocumentFormat]:
        return list(self._parsers)

    def parse(
        self, content: str, filename: str | None = None, fmt: DocumentFormat | str | None = None
    ) -> ParsedApiDocument:
        """Parse `content`, detecting its format first unless `fmt` is given."""
        if fmt is None:
            fmt = detect_format(content, filename)
        parser = self.get(fmt)
        document = parser.parse(content)
        logger.debug(f"Parsed {filename or 'document'} as {DocumentFormat(fmt).value}: {len(document.endpoints)} endpoints")
        return document

    def parse_file(self, file_path: Path, fmt: DocumentFormat | str | None = None) -> ParsedApiDocument:
        text = file_path.read_text(encoding="utf-8")
        return self.parse(text, file_path.name, fmt)


def build_default_registry() -> ParserRegistry:
    """Return a new registry with every built-in parser registered."""
    registry = ParserRegistry()
    openapi = OpenApiParser()
    registry.register(DocumentFormat.OPENAPI_V2, openapi)
    registry.register(DocumentFormat.OPENAPI_V3, openapi)
    registry.register(DocumentFormat.POSTMAN, PostmanParser())
    registry.register(DocumentFormat.INSOMNIA, InsomniaParser())
    registry.register(DocumentFormat.CUSTOM, CustomParser())
    return registry
