"""Sinks — where settled values and errors are written.

Two variants, chosen once when a Source is built (see as_sink):

- KeyedSink:    a mutable mapping keyed by property name
- CallbackSink: a callable receiving (name, value); may be async

Writes are keyed and independent. Nothing written to a sink ever flows
back into a property's current value.
"""

from __future__ import annotations

import inspect
from collections.abc import MutableMapping
from typing import Any, Callable

from midstream.errors import ConfigurationError


class Sink:
    """Uniform write interface over an external store."""

    __slots__ = ()

    @property
    def target(self) -> Any:
        """The caller-owned store this sink writes to."""
        raise NotImplementedError

    async def write(self, name: str, value: Any) -> None:
        raise NotImplementedError

    async def clear(self, name: str) -> None:
        """Remove whatever is recorded for `name`."""
        raise NotImplementedError

    def read(self, name: str) -> Any:
        """Last committed value for `name`, or None."""
        raise NotImplementedError


class KeyedSink(Sink):
    """Sink backed by a mapping: sink[name] = value."""

    __slots__ = ("_data",)

    def __init__(self, data: MutableMapping | None = None) -> None:
        self._data = {} if data is None else data

    @property
    def target(self) -> MutableMapping:
        return self._data

    async def write(self, name: str, value: Any) -> None:
        self._data[name] = value

    async def clear(self, name: str) -> None:
        # Absent key means "nothing recorded".
        self._data.pop(name, None)

    def read(self, name: str) -> Any:
        return self._data.get(name)

    def __repr__(self) -> str:
        return f"KeyedSink({self._data!r})"


class CallbackSink(Sink):
    """Sink backed by fn(name, value). Clearing calls fn(name, None).

    Remembers the last value written per name so read() works the same as
    for a KeyedSink.
    """

    __slots__ = ("_fn", "_last")

    def __init__(self, fn: Callable[[str, Any], Any]) -> None:
        self._fn = fn
        self._last: dict[str, Any] = {}

    @property
    def target(self) -> Callable[[str, Any], Any]:
        return self._fn

    async def write(self, name: str, value: Any) -> None:
        result = self._fn(name, value)
        if inspect.isawaitable(result):
            await result
        self._last[name] = value

    async def clear(self, name: str) -> None:
        result = self._fn(name, None)
        if inspect.isawaitable(result):
            await result
        self._last.pop(name, None)

    def read(self, name: str) -> Any:
        return self._last.get(name)

    def __repr__(self) -> str:
        fn_name = getattr(self._fn, "__name__", type(self._fn).__name__)
        return f"CallbackSink({fn_name})"


def as_sink(target: Any) -> Sink:
    """Select the sink variant for `target`.

    None gets a fresh dict. Sinks pass through unchanged.
    """
    if target is None:
        return KeyedSink()
    if isinstance(target, Sink):
        return target
    if isinstance(target, MutableMapping):
        return KeyedSink(target)
    if callable(target):
        return CallbackSink(target)
    raise ConfigurationError(
        f"sink must be a mutable mapping or a callable, got {type(target).__name__}"
    )
