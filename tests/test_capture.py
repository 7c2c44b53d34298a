import pytest

from conftest import FakeContext
from e2e_test_agent.runner.capture import CaptureSession
from e2e_test_agent.runner.models import ConsoleMessage, NetworkRequest, NetworkResponse


def _request(request_id="r1", url="http://app.test/api"):
    return NetworkRequest(request_id=request_id, url=url)


class TestCaptureSession:
    def test_start_subscribes_to_all_event_kinds(self):
        context = FakeContext()
        session = CaptureSession(context, "tc-001")
        session.start()
        assert session.active
        assert set(context.handlers) == {"request", "response", "console", "pageerror"}

    def test_events_are_appended_in_arrival_order(self):
        context = FakeContext()
        session = CaptureSession(context, "tc-001")
        session.start()
        context.emit("request", _request("r1"))
        context.emit("console", ConsoleMessage(type="log", text="hello"))
        context.emit("request", _request("r2"))
        context.emit("response", NetworkResponse(request_id="r1", status=200))
        context.emit("pageerror", ConsoleMessage(type="error", text="boom"))

        assert [r.request_id for r in session.requests] == ["r1", "r2"]
        assert [r.request_id for r in session.responses] == ["r1"]
        assert [m.type for m in session.console_messages] == ["log", "pageerror"]

    def test_pending_requests(self):
        context = FakeContext()
        session = CaptureSession(context)
        session.start()
        context.emit("request", _request("r1"))
        context.emit("request", _request("r2"))
        context.emit("response", NetworkResponse(request_id="r2", status=204))
        assert [r.request_id for r in session.pending_requests] == ["r1"]

    def test_close_freezes_and_ignores_late_events(self):
        context = FakeContext()
        session = CaptureSession(context, "tc-001")
        session.start()
        handler = context.handlers["request"][0]
        context.emit("request", _request("r1"))
        log = session.close()

        handler(_request("late"))
        assert session.closed and not session.active
        assert context.handlers["request"] == []
        assert isinstance(log.requests, tuple)
        assert [r.request_id for r in log.requests] == ["r1"]
        assert log.test_case_id == "tc-001"

    def test_close_is_idempotent(self):
        session = CaptureSession(FakeContext())
        session.start()
        first = session.close()
        assert session.close() is first

    def test_log_is_none_until_closed(self):
        session = CaptureSession(FakeContext())
        session.start()
        assert session.log is None

    def test_without_context_records_engine_exchanges(self):
        session = CaptureSession(None, "tc-002")
        session.start()
        request = _request("r9")
        session.record_request(request)
        session.record_response(NetworkResponse(request_id="r9", status=500))
        log = session.close()
        assert log.response_for("r9").status == 500

    @pytest.mark.asyncio
    async def test_async_context_closes_on_error(self):
        context = FakeContext()
        session = CaptureSession(context, "tc-003")
        with pytest.raises(RuntimeError):
            async with session:
                context.emit("request", _request())
                raise RuntimeError("step failed")
        assert session.closed
        assert len(session.log.requests) == 1
        assert all(not handlers for handlers in context.handlers.values())

    def test_events_are_stamped_with_the_case(self):
        context = FakeContext()
        session = CaptureSession(context, "tc-004")
        session.start()
        context.emit("request", _request("r1"))
        context.emit("response", NetworkResponse(request_id="r1", status=200))
        context.emit("pageerror", ConsoleMessage(type="error", text="boom"))
        log = session.close()
        assert log.requests[0].test_case_id == "tc-004"
        assert log.responses[0].test_case_id == "tc-004"
        assert log.console_messages[0].test_case_id == "tc-004"
