import asyncio

import pytest

from e2e_test_agent.runner.http import HttpResponse


class FakeContext:
    """In-memory execution context.

    `hooks` maps a URL or selector to a callable run when that target is
    used (it receives the context, so it can emit events). `failures` maps a
    target to an exception to raise; `delays` maps a target to seconds slept.
    """

    def __init__(self, hooks=None, failures=None, delays=None, evaluate_result=True):
        self.hooks = hooks or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.evaluate_result = evaluate_result
        self.calls = []
        self.handlers = {}
        self.closed = False

    async def _act(self, name, target, *args):
        self.calls.append((name, target, *args))
        if target in self.delays:
            await asyncio.sleep(self.delays[target])
        if target in self.failures:
            raise self.failures[target]
        if target in self.hooks:
            self.hooks[target](self)

    async def load(self, url):
        await self._act("load", url)

    async def invoke(self, selector):
        await self._act("invoke", selector)

    async def set_value(self, selector, value):
        await self._act("set_value", selector, value)

    async def toggle(self, selector):
        await self._act("toggle", selector)

    async def choose_option(self, selector, value):
        await self._act("choose_option", selector, value)

    async def evaluate(self, script):
        await self._act("evaluate", script)
        return self.evaluate_result

    def subscribe(self, kind, handler):
        self.handlers.setdefault(kind, []).append(handler)

    def unsubscribe(self, kind, handler):
        self.handlers[kind].remove(handler)

    def emit(self, kind, event):
        for handler in list(self.handlers.get(kind, [])):
            handler(event)

    async def close(self):
        self.closed = True


class FakeContextFactory:
    def __init__(self, make_context=FakeContext):
        self.make_context = make_context
        self.contexts = []

    async def open_context(self):
        context = self.make_context()
        self.contexts.append(context)
        return context


class FakeHttpClient:
    """Returns canned responses keyed by (METHOD, url); 200 with `{}` otherwise."""

    def __init__(self, responses=None, failures=None, delay=0.0):
        self.responses = responses or {}
        self.failures = failures or {}
        self.delay = delay
        self.calls = []

    async def issue(self, method, url, headers=None, body=None):
        self.calls.append((method.upper(), url, headers, body))
        if self.delay:
            await asyncio.sleep(self.delay)
        key = (method.upper(), url)
        if key in self.failures:
            raise self.failures[key]
        return self.responses.get(key, HttpResponse(status=200, body={}, text="{}", elapsed_ms=1.0))


@pytest.fixture
def context_factory():
    return FakeContextFactory()


@pytest.fixture
def http_client():
    return FakeHttpClient()
