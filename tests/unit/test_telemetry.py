"""Unit tests for the telemetry sink."""

import asyncio

import pytest

from agent_team.tracing import OPT_OUT_ENV, TelemetrySink, telemetry_opted_out


@pytest.fixture
def opted_in(monkeypatch):
    monkeypatch.delenv(OPT_OUT_ENV, raising=False)


class TestTelemetrySink:
    """Tests for TelemetrySink."""

    @pytest.mark.parametrize("value", ["true", "1", "YES"])
    def test_opt_out_env(self, monkeypatch, value):
        monkeypatch.setenv(OPT_OUT_ENV, value)

        assert telemetry_opted_out()
        assert not TelemetrySink().enabled

    def test_counts_signals(self, opted_in):
        sink = TelemetrySink()

        sink.signal("workflow_started")
        sink.signal("workflow_started")
        sink.signal("workflow_finished")

        assert sink.get_counter("workflow_started") == 2
        assert sink.get_counter("workflow_finished") == 1
        assert sink.get_counter("never") == 0

    def test_disabled_sink_ignores_signals(self, opted_in):
        received = []
        sink = TelemetrySink(enabled=False, handlers=[lambda name, data: received.append(name)])

        sink.signal("workflow_started")

        assert sink.get_counter("workflow_started") == 0
        assert received == []

    def test_handlers_run_without_loop(self, opted_in):
        received = []
        sink = TelemetrySink()
        sink.add_handler(lambda name, data: received.append((name, data)))

        sink.signal("task_error", {"reason": "timeout"})

        assert received == [("task_error", {"reason": "timeout"})]

    def test_failing_handler_is_contained(self, opted_in):
        def broken(name, data):
            raise RuntimeError("collector down")

        sink = TelemetrySink(handlers=[broken])
        sink.signal("workflow_started")

        assert sink.get_counter("workflow_started") == 1


@pytest.mark.asyncio
class TestTelemetryInLoop:
    """Tests for signals emitted from a running event loop."""

    async def test_handlers_run_after_the_caller(self, opted_in):
        received = []
        sink = TelemetrySink(handlers=[lambda name, data: received.append(name)])

        sink.signal("workflow_started")
        assert received == []

        await asyncio.sleep(0)
        assert received == ["workflow_started"]

    async def test_async_handlers(self, opted_in):
        received = asyncio.Event()

        async def handler(name, data):
            received.set()

        sink = TelemetrySink(handlers=[handler])
        sink.signal("workflow_finished", {"duration": 1.5})

        await asyncio.wait_for(received.wait(), 1)
