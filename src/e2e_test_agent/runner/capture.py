"""Capture session: append-only network and console log for one case."""

from loguru import logger

from .context import ExecutionContext
from .models import ConsoleMessage, NetworkLog, NetworkRequest, NetworkResponse


class CaptureSession:
    """Subscribes to a context's events for the lifetime of one case.

    Handlers only ever append, stamping each event with the case id. Once closed, the lists are frozen into a
    NetworkLog and late events are dropped. Without a context (API-only
    cases) the session only records exchanges the engine reports.

    Usage:
        async with CaptureSession(context, case.id) as capture:
            ...
        log = capture.log
    """

    def __init__(self, context: ExecutionContext | None, case_id: str | None = None):
        self.context = context
        self.case_id = case_id
        self.requests: list[NetworkRequest] = []
        self.responses: list[NetworkResponse] = []
        self.console_messages: list[ConsoleMessage] = []
        self._active = False
        self._closed = False
        self._log: NetworkLog | None = None
        self._handlers = {
            "request": self._on_request,
            "response": self._on_response,
            "console": self._on_console,
            "pageerror": self._on_pageerror,
        }

    @property
    def active(self) -> bool:
        return self._active

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._active or self._closed:
            return
        if self.context is not None:
            for kind, handler in self._handlers.items():
                self.context.subscribe(kind, handler)
        self._active = True
        logger.debug(f"[{self.case_id}] capture started")

    def close(self) -> NetworkLog:
        """Unsubscribe and freeze. Safe to call more than once."""
        if self._closed:
            return self._log
        if self._active and self.context is not None:
            for kind, handler in self._handlers.items():
                try:
                    self.context.unsubscribe(kind, handler)
                except Exception as e:
                    logger.debug(f"[{self.case_id}] error removing {kind} handler: {e}")
        self._active = False
        self._closed = True
        self._log = NetworkLog(
            test_case_id=self.case_id,
            requests=tuple(self.requests),
            responses=tuple(self.responses),
            console_messages=tuple(self.console_messages),
        )
        logger.debug(
            f"[{self.case_id}] capture closed: {len(self.requests)} requests, "
            f"{len(self.responses)} responses, {len(self.console_messages)} console messages"
        )
        return self._log

    @property
    def log(self) -> NetworkLog | None:
        """The frozen log; None until the session is closed."""
        return self._log

    @property
    def pending_requests(self) -> list[NetworkRequest]:
        """Requests that never received a response."""
        answered = {response.request_id for response in self.responses}
        return [request for request in self.requests if request.request_id not in answered]

    # Exchanges issued outside the page (engine HTTP calls) are appended through these.
    def record_request(self, request: NetworkRequest) -> None:
        self._on_request(request)

    def record_response(self, response: NetworkResponse) -> None:
        self._on_response(response)

    def _owned(self, event):
        if self.case_id is None or event.test_case_id is not None:
            return event
        return event.model_copy(update={"test_case_id": self.case_id})

    def _on_request(self, request: NetworkRequest) -> None:
        if self._closed:
            return
        self.requests.append(self._owned(request))

    def _on_response(self, response: NetworkResponse) -> None:
        if self._closed:
            return
        if not any(request.request_id == response.request_id for request in self.requests):
            logger.debug(f"[{self.case_id}] response without captured request: {response.url}")
        self.responses.append(self._owned(response))

    def _on_console(self, message: ConsoleMessage) -> None:
        if self._closed:
            return
        self.console_messages.append(self._owned(message))

    def _on_pageerror(self, message: ConsoleMessage) -> None:
        if self._closed:
            return
        if message.type != "pageerror":
            message = message.model_copy(update={"type": "pageerror"})
        self.console_messages.append(self._owned(message))

    async def __aenter__(self) -> "CaptureSession":
        self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()
