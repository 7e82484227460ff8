"""Tests for KeyedSink, CallbackSink and as_sink."""

import pytest

from midstream import CallbackSink, ConfigurationError, KeyedSink, Sink, as_sink


class TestKeyedSink:
    @pytest.mark.asyncio
    async def test_write_read(self):
        data = {}
        sink = KeyedSink(data)
        await sink.write("a", 1)
        assert data == {"a": 1}
        assert sink.read("a") == 1
        assert sink.read("missing") is None

    @pytest.mark.asyncio
    async def test_clear_removes_key(self):
        data = {"a": ValueError("x")}
        sink = KeyedSink(data)
        await sink.clear("a")
        assert data == {}
        await sink.clear("a")  # already absent, no error

    @pytest.mark.asyncio
    async def test_none_is_a_value(self):
        sink = KeyedSink()
        await sink.write("a", None)
        assert sink.target == {"a": None}


class TestCallbackSink:
    @pytest.mark.asyncio
    async def test_sync_callback(self):
        calls = []
        sink = CallbackSink(lambda name, value: calls.append((name, value)))
        await sink.write("a", 1)
        await sink.clear("a")
        assert calls == [("a", 1), ("a", None)]
        assert sink.read("a") is None

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self):
        calls = []

        async def record(name, value):
            calls.append((name, value))

        sink = CallbackSink(record)
        await sink.write("a", 2)
        assert calls == [("a", 2)]
        assert sink.read("a") == 2

    def test_repr(self):
        def store(name, value):
            pass

        assert repr(CallbackSink(store)) == "CallbackSink(store)"


class TestAsSink:
    def test_none_makes_fresh_dict(self):
        a, b = as_sink(None), as_sink(None)
        assert isinstance(a, KeyedSink)
        assert a.target == {}
        assert a.target is not b.target

    def test_mapping(self):
        data = {}
        sink = as_sink(data)
        assert isinstance(sink, KeyedSink)
        assert sink.target is data

    def test_callable(self):
        fn = lambda name, value: None  # noqa: E731
        sink = as_sink(fn)
        assert isinstance(sink, CallbackSink)
        assert sink.target is fn

    def test_sink_passes_through(self):
        sink = KeyedSink()
        assert as_sink(sink) is sink
        assert isinstance(sink, Sink)

    def test_rejects_other_types(self):
        with pytest.raises(ConfigurationError):
            as_sink(42)
