"""Error types raised by the parsing, synthesis and execution layers."""

from enum import Enum


class ErrorKind(str, Enum):
    """Error kinds recorded in execution results."""

    STEP_EXECUTION = "StepExecutionError"
    TIMEOUT = "TimeoutError"
    ASSERTION = "AssertionFailure"
    CANCELLED = "Cancelled"


class AgentError(Exception):
    """Base class for all e2e-test-agent errors."""


class UnsupportedFormatError(AgentError):
    """Raised when no format detection rule matches a document."""

    def __init__(self, checks: list[str]):
        self.checks = list(checks)
        super().__init__("Unsupported document format; attempted checks: " + "; ".join(self.checks))


class DocumentParseError(AgentError):
    """Raised when a document is structurally malformed."""

    def __init__(self, message: str, location: str = "<root>"):
        self.location = location
        super().__init__(f"{message} (at {location})")


class NoParserRegisteredError(AgentError):
    """Raised when a registry has no parser for the requested format."""

    def __init__(self, fmt: str):
        self.format = fmt
        super().__init__(f"No parser registered for format '{fmt}'")


class OracleResponseError(AgentError):
    """Raised when the text-generation oracle returns unusable output."""


class StepExecutionError(AgentError):
    """Raised when a step primitive fails to complete."""

    kind = ErrorKind.STEP_EXECUTION

    def __init__(self, step_index: int, message: str):
        self.step_index = step_index
        super().__init__(message)


class StepTimeoutError(StepExecutionError):
    """Raised when a step primitive exceeds the engine timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, step_index: int, timeout: float):
        self.timeout = timeout
        super().__init__(step_index, f"Step {step_index} timed out after {timeout:g}s")


class CaseCancelledError(AgentError):
    """Raised inside the engine when suite cancellation reaches a case."""

    kind = ErrorKind.CANCELLED
