"""Unit tests for handler registration and dispatch."""

import logging
import threading

import pytest

from gpsd_client.protocol.messages import (
    ClockReport,
    ErrorMessage,
    GpsdMessage,
    GpsdReport,
    PPSReport,
    SKYReport,
    TOFFReport,
    TPVReport,
    VersionMessage,
)
from gpsd_client.registry import HandlerRegistry, OneShotHandler


class Recorder:
    """Handler that records what it was called with."""

    def __init__(self, name: str = "", log: list | None = None):
        self.name = name
        self.log = log if log is not None else []

    def __call__(self, message):
        self.log.append((self.name, message))


class TestRegistration:
    """Test adding and removing handlers."""

    def test_register_and_snapshot(self):
        registry = HandlerRegistry()
        handler = Recorder()

        registry.register(TPVReport, handler)

        assert registry.handlers_for(TPVReport) == [handler]
        assert registry.handlers_for(SKYReport) == []

    def test_snapshot_is_a_copy(self):
        registry = HandlerRegistry()
        registry.register(TPVReport, Recorder())

        registry.handlers_for(TPVReport).clear()

        assert len(registry.handlers_for(TPVReport)) == 1

    def test_register_rejects_non_message_types(self):
        registry = HandlerRegistry()

        with pytest.raises(TypeError):
            registry.register(dict, Recorder())
        with pytest.raises(TypeError):
            registry.register("TPV", Recorder())

    def test_duplicates_allowed(self):
        """The same handler registered twice runs twice."""
        registry = HandlerRegistry()
        handler = Recorder()
        registry.register(TPVReport, handler)
        registry.register(TPVReport, handler)

        registry.dispatch(TPVReport())

        assert len(handler.log) == 2

    def test_unregister_removes_first_match(self):
        registry = HandlerRegistry()
        handler = Recorder()
        registry.register(TPVReport, handler)
        registry.register(TPVReport, handler)

        assert registry.unregister(TPVReport, handler) is True
        assert registry.handlers_for(TPVReport) == [handler]

    def test_unregister_missing(self):
        registry = HandlerRegistry()
        handler = Recorder()
        registry.register(TPVReport, handler)

        assert registry.unregister(SKYReport, handler) is False
        assert registry.unregister(TPVReport, Recorder()) is False

    def test_unregister_exact_type_only(self):
        """Removing from a subtype leaves the ancestor registration in place."""
        registry = HandlerRegistry()
        handler = Recorder()
        registry.register(GpsdReport, handler)

        assert registry.unregister(TPVReport, handler) is False
        assert registry.handlers_for(GpsdReport) == [handler]

    def test_unregister_everywhere(self):
        registry = HandlerRegistry()
        handler = Recorder()
        other = Recorder()
        registry.register(TPVReport, handler)
        registry.register(TPVReport, other)
        registry.register(SKYReport, handler)
        registry.register(SKYReport, handler)
        registry.register(GpsdMessage, handler)

        assert registry.unregister_everywhere(handler) is True

        assert registry.handlers_for(TPVReport) == [other]
        assert registry.handlers_for(SKYReport) == []
        assert registry.handlers_for(GpsdMessage) == []
        assert registry.unregister_everywhere(handler) is False


class TestDispatch:
    """Test delivery along the type hierarchy."""

    def test_specific_type_first_then_ancestors(self):
        log = []
        registry = HandlerRegistry()
        registry.register(GpsdMessage, Recorder("all", log))
        registry.register(GpsdReport, Recorder("reports", log))
        registry.register(TPVReport, Recorder("tpv-1", log))
        registry.register(TPVReport, Recorder("tpv-2", log))

        count = registry.dispatch(TPVReport(latitude=1.0))

        assert count == 4
        assert [name for name, _ in log] == ["tpv-1", "tpv-2", "reports", "all"]

    def test_four_level_chain_order(self):
        """A clock report reaches its own, clock, report and root handlers in that order."""
        log = []
        registry = HandlerRegistry()
        registry.register(GpsdMessage, Recorder("all", log))
        registry.register(GpsdReport, Recorder("reports", log))
        registry.register(ClockReport, Recorder("clock", log))
        registry.register(TOFFReport, Recorder("toff", log))

        count = registry.dispatch(TOFFReport())

        assert count == 4
        assert [name for name, _ in log] == ["toff", "clock", "reports", "all"]

    def test_register_then_unregister_leaves_dispatch_unchanged(self):
        """Dispatch matches a registry that never saw the removed handler."""
        messages = [TPVReport(latitude=1.0), SKYReport(), ErrorMessage(message="x")]

        def build(extra: bool):
            log = []
            registry = HandlerRegistry()
            registry.register(TPVReport, Recorder("tpv", log))
            registry.register(GpsdMessage, Recorder("all", log))
            if extra:
                transient = Recorder("transient", log)
                registry.register(TPVReport, transient)
                registry.unregister(TPVReport, transient)
            for message in messages:
                registry.dispatch(message)
            return log

        assert build(extra=True) == build(extra=False)

    def test_unrelated_handlers_not_called(self):
        log = []
        registry = HandlerRegistry()
        registry.register(SKYReport, Recorder("sky", log))
        registry.register(ErrorMessage, Recorder("error", log))

        assert registry.dispatch(TPVReport()) == 0
        assert log == []

    def test_error_reaches_root_but_not_reports(self):
        log = []
        registry = HandlerRegistry()
        registry.register(GpsdReport, Recorder("reports", log))
        registry.register(GpsdMessage, Recorder("all", log))

        registry.dispatch(ErrorMessage(message="bad"))

        assert [name for name, _ in log] == ["all"]

    def test_pps_not_delivered_to_toff_handlers(self):
        log = []
        registry = HandlerRegistry()
        registry.register(TOFFReport, Recorder("toff", log))
        registry.register(ClockReport, Recorder("clock", log))

        registry.dispatch(PPSReport())

        assert [name for name, _ in log] == ["clock"]

    def test_handler_exception_isolated(self, caplog):
        """A failing handler is logged and later handlers still run."""
        log = []
        registry = HandlerRegistry()

        def broken(message):
            raise RuntimeError("handler blew up")

        registry.register(TPVReport, broken)
        registry.register(TPVReport, Recorder("after", log))

        with caplog.at_level(logging.ERROR, logger="gpsd_client.registry"):
            count = registry.dispatch(TPVReport())

        assert count == 2
        assert [name for name, _ in log] == ["after"]
        assert "Error in handler" in caplog.text
        assert "handler blew up" in caplog.text

    def test_dispatch_through_submit(self):
        """With a scheduler, handlers are submitted rather than called."""
        submitted = []
        registry = HandlerRegistry()
        handler = Recorder()
        registry.register(TPVReport, handler)

        def submit(fn, *args):
            submitted.append((fn, args))

        message = TPVReport()
        assert registry.dispatch(message, submit) == 1
        assert handler.log == []

        fn, args = submitted[0]
        fn(*args)
        assert handler.log == [("", message)]

    def test_register_during_dispatch(self):
        """Handlers added while dispatching apply to the next message."""
        log = []
        registry = HandlerRegistry()
        late = Recorder("late", log)

        def add_late(message):
            log.append(("first", message))
            registry.register(TPVReport, late)

        registry.register(TPVReport, add_late)

        registry.dispatch(TPVReport())
        assert [name for name, _ in log] == ["first"]

        registry.dispatch(TPVReport())
        assert [name for name, _ in log] == ["first", "first", "late"]


class TestOneShotHandler:
    """Test single-use reply handlers."""

    def test_fires_once_and_unregisters(self):
        registry = HandlerRegistry()
        replies = []
        handler = OneShotHandler(registry, VersionMessage, replies.append)
        registry.register(VersionMessage, handler)

        first = VersionMessage(release="3.25")
        registry.dispatch(first)
        registry.dispatch(VersionMessage(release="3.26"))

        assert replies == [first]
        assert handler.consumed
        assert registry.handlers_for(VersionMessage) == []

    def test_concurrent_invocations_fire_once(self):
        """Two queued deliveries of the same handler run the callback once."""
        registry = HandlerRegistry()
        replies = []
        handler = OneShotHandler(registry, VersionMessage, replies.append)
        registry.register(VersionMessage, handler)

        threads = [
            threading.Thread(target=handler, args=(VersionMessage(release=str(i)),))
            for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(replies) == 1

    def test_other_handlers_unaffected(self):
        registry = HandlerRegistry()
        permanent = Recorder()
        registry.register(VersionMessage, permanent)
        registry.register(VersionMessage, OneShotHandler(registry, VersionMessage, Recorder()))

        registry.dispatch(VersionMessage())
        registry.dispatch(VersionMessage())

        assert len(permanent.log) == 2
        assert registry.handlers_for(VersionMessage) == [permanent]
