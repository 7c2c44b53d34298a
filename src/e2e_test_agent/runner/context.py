"""Execution context protocols and their Playwright implementation.

The engine only talks to `ExecutionContext` and `ContextFactory`; tests
substitute in-memory fakes for them.
"""

from typing import Any, Callable, Protocol

from loguru import logger
from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from e2e_test_agent.config import BrowserType, Settings

from .models import ConsoleLocation, ConsoleMessage, NetworkRequest, NetworkResponse

EVENT_KINDS = ("request", "response", "console", "pageerror")
TEXT_CONTENT_TYPES = ("json", "text", "xml", "javascript", "html")

EventHandler = Callable[[Any], None]


class ExecutionContext(Protocol):
    async def load(self, url: str) -> None: ...

    async def invoke(self, selector: str) -> None: ...

    async def set_value(self, selector: str, value: str) -> None: ...

    async def toggle(self, selector: str) -> None: ...

    async def choose_option(self, selector: str, value: str) -> None: ...

    async def evaluate(self, script: str) -> Any: ...

    def subscribe(self, kind: str, handler: EventHandler) -> None: ...

    def unsubscribe(self, kind: str, handler: EventHandler) -> None: ...

    async def close(self) -> None: ...


class ContextFactory(Protocol):
    async def open_context(self) -> ExecutionContext: ...


def request_id_of(request) -> str:
    return f"{id(request):x}"


class PlaywrightContext:
    """One browser context and page, with events adapted to capture models."""

    def __init__(self, context: BrowserContext, page: Page, base_url: str = ""):
        self._context = context
        self.page = page
        self.base_url = base_url.rstrip("/")
        self._adapters: dict[tuple[str, EventHandler], Callable] = {}

    async def load(self, url: str) -> None:
        if not url.startswith(("http://", "https://")):
            url = self.base_url + url
        await self.page.goto(url)

    async def invoke(self, selector: str) -> None:
        await self.page.click(selector)

    async def set_value(self, selector: str, value: str) -> None:
        await self.page.fill(selector, value)

    async def toggle(self, selector: str) -> None:
        await self.page.check(selector)

    async def choose_option(self, selector: str, value: str) -> None:
        await self.page.select_option(selector, value)

    async def evaluate(self, script: str) -> Any:
        return await self.page.evaluate(script)

    def subscribe(self, kind: str, handler: EventHandler) -> None:
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind: {kind}")
        adapter = self._adapter(kind, handler)
        self._adapters[(kind, handler)] = adapter
        self.page.on(kind, adapter)

    def unsubscribe(self, kind: str, handler: EventHandler) -> None:
        adapter = self._adapters.pop((kind, handler), None)
        if adapter is not None:
            self.page.remove_listener(kind, adapter)

    async def close(self) -> None:
        await self._context.close()

    def _adapter(self, kind: str, handler: EventHandler) -> Callable:
        if kind == "request":

            def on_request(request):
                handler(
                    NetworkRequest(
                        request_id=request_id_of(request),
                        url=request.url,
                        method=request.method,
                        headers=dict(request.headers),
                        post_data=request.post_data,
                        resource_type=request.resource_type,
                    )
                )

            return on_request

        if kind == "response":

            async def on_response(response):
                body = None
                content_type = response.headers.get("content-type", "")
                if any(marker in content_type for marker in TEXT_CONTENT_TYPES):
                    try:
                        body = await response.text()
                    except Exception as e:
                        logger.debug(f"Response body unavailable for {response.url}: {e}")
                handler(
                    NetworkResponse(
                        request_id=request_id_of(response.request),
                        url=response.url,
                        status=response.status,
                        status_text=response.status_text,
                        headers=dict(response.headers),
                        body=body,
                    )
                )

            return on_response

        if kind == "console":

            def on_console(message):
                location = message.location or {}
                handler(
                    ConsoleMessage(
                        type=message.type,
                        text=message.text,
                        location=ConsoleLocation(
                            url=location.get("url", ""),
                            line_number=location.get("lineNumber"),
                            column_number=location.get("columnNumber"),
                        ),
                    )
                )

            return on_console

        def on_pageerror(error):
            handler(ConsoleMessage(type="pageerror", text=error.message, stack=error.stack))

        return on_pageerror


class PlaywrightDriver:
    """Owns one Playwright browser; hands out a fresh context per case.

    Usage:
        async with PlaywrightDriver(settings) as driver:
            context = await driver.open_context()
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._playwright = None
        self._browser: Browser | None = None

    async def start(self) -> None:
        if self._browser is not None:
            return
        self._playwright = await async_playwright().start()
        launcher = {
            BrowserType.CHROMIUM: self._playwright.chromium,
            BrowserType.FIREFOX: self._playwright.firefox,
            BrowserType.WEBKIT: self._playwright.webkit,
        }[BrowserType(self.settings.browser_type)]
        self._browser = await launcher.launch(
            headless=self.settings.browser_headless,
            slow_mo=self.settings.browser_slow_mo,
        )
        logger.info(f"Launched {self.settings.browser_type} (headless={self.settings.browser_headless})")

    async def open_context(self) -> PlaywrightContext:
        await self.start()
        context = await self._browser.new_context(
            viewport={
                "width": self.settings.browser_viewport_width,
                "height": self.settings.browser_viewport_height,
            }
        )
        page = await context.new_page()
        return PlaywrightContext(context, page, base_url=self.settings.api_url)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> "PlaywrightDriver":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
