"""Tests for midstream.textual — Textual integration layer."""

import asyncio
import threading

import pytest
from textual.css.query import NoMatches

from midstream import CallbackSink, create_source
from midstream import textual as mtx


class _MockApp:
    """Minimal mock matching the Textual App interface mtx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)


class TestWidgetSink:
    @pytest.mark.asyncio
    async def test_is_a_callback_sink(self):
        sink = mtx.widget_sink(_MockApp(), lambda name, value: None)
        assert isinstance(sink, CallbackSink)

    @pytest.mark.asyncio
    async def test_fires_when_safe(self):
        app = _MockApp()
        effects = []
        sink = mtx.widget_sink(app, lambda name, value: effects.append((name, value)))
        await sink.write("a", 1)
        assert effects == [("a", 1)]

    @pytest.mark.asyncio
    async def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        effects = []
        sink = mtx.widget_sink(app, lambda name, value: effects.append(value))
        await sink.write("a", 1)
        assert effects == []

    @pytest.mark.asyncio
    async def test_skips_during_pause(self):
        app = _MockApp()
        effects = []
        sink = mtx.widget_sink(app, lambda name, value: effects.append(value))
        with mtx.pause(app):
            await sink.write("a", 1)
        await sink.write("a", 2)
        assert effects == [2]

    @pytest.mark.asyncio
    async def test_skipped_writes_are_not_remembered(self):
        """read() only reports values the widgets actually received."""
        app = _MockApp()
        sink = mtx.widget_sink(app, lambda name, value: None)
        await sink.write("a", 1)

        with mtx.pause(app):
            await sink.write("a", 2)
        assert sink.read("a") == 1

        app.is_running = False
        await sink.write("a", 3)
        await sink.write("b", 4)
        assert sink.read("a") == 1
        assert sink.read("b") is None

        app.is_running = True
        await sink.write("a", 5)
        assert sink.read("a") == 5

    @pytest.mark.asyncio
    async def test_catches_nomatch(self):
        """NoMatches from widget queries is silently swallowed."""

        def _raise_nomatch(name, value):
            raise NoMatches("#status")

        sink = mtx.widget_sink(_MockApp(), _raise_nomatch)
        await sink.write("a", 1)  # should not raise

    @pytest.mark.asyncio
    async def test_propagates_real_errors(self):
        def _raise_value_error(name, value):
            raise ValueError("boom")

        sink = mtx.widget_sink(_MockApp(), _raise_value_error)
        with pytest.raises(ValueError, match="boom"):
            await sink.write("a", 1)

    def test_thread_marshal(self):
        """Writes from a background thread use call_from_thread."""
        app = _MockApp()
        effects = []
        sink = mtx.widget_sink(app, lambda name, value: effects.append(value))

        t = threading.Thread(target=lambda: asyncio.run(sink.write("a", 2)))
        t.start()
        t.join()

        assert effects == [2]
        assert len(app._call_from_thread_log) == 1

    @pytest.mark.asyncio
    async def test_as_source_sinks(self):
        app = _MockApp()
        shown, problems = {}, {}

        def check(x):
            if x < 0:
                raise ValueError("negative")
            return x

        ms = create_source(
            {"count": [1, check]},
            destination=mtx.widget_sink(app, shown.__setitem__),
            errors=mtx.widget_sink(app, problems.__setitem__),
        )
        await ms.wait_all()
        assert shown == {"count": 1}
        assert problems == {"count": None}

        ms.setCount(-1)
        await ms.wait_all()
        assert shown == {"count": 1}
        assert str(problems["count"]) == "negative"
        assert ms.source.read_destination("count") == 1


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert mtx.is_safe(app)

        with pytest.raises(RuntimeError):
            with mtx.pause(app):
                assert not mtx.is_safe(app)
                raise RuntimeError("oops")

        # Restored despite exception
        assert mtx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        """Pause state lives in the module, not on the app."""
        app = _MockApp()
        attrs_before = set(vars(app))
        with mtx.pause(app):
            attrs_during = set(vars(app))
        attrs_after = set(vars(app))
        assert attrs_before == attrs_during, (
            f"pause() added attributes to app: {attrs_during - attrs_before}"
        )
        assert attrs_before == attrs_after

    def test_multiple_apps_independent(self):
        """Pausing one app does not affect another."""
        app_a = _MockApp()
        app_b = _MockApp()
        with mtx.pause(app_a):
            assert not mtx.is_safe(app_a)
            assert mtx.is_safe(app_b)
