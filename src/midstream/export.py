"""create_source() — build a Source and export ergonomic accessors for it.

Every property gets a reader and a writer under a derived name:

    ms = create_source({"user.name": [""], "age": [0, check_age]})
    ms.userName            # current value of "user.name"
    ms.setUserName("bob")  # assign (schedules the chain)
    await ms.wait_all()
    ms.destination         # {"user.name": "bob", "age": 0}

The raw hooks are under ms.hooks, the bindings under ms.bindings.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping

from midstream.errors import ConfigurationError
from midstream.naming import camel_case, setter_name
from midstream.source import Hook, Source


def _pick(name: str, value: Any, alias: str, alias_value: Any) -> Any:
    if value is not None and alias_value is not None:
        raise ConfigurationError(f"pass either {name!r} or {alias!r}, not both")
    return value if value is not None else alias_value


class Midstream:
    """Bundle returned by create_source(): the source, its sinks, hooks and bindings."""

    def __init__(self, source: Source) -> None:
        self.source = source
        self.bindings: dict[str, Callable[..., Any]] = {}
        self._readers: dict[str, str] = {}
        owners: dict[str, str] = {}

        for name in source:
            reader, writer = camel_case(name), setter_name(name)
            for derived in (reader, writer):
                if derived in owners:
                    raise ConfigurationError(
                        f"properties {owners[derived]!r} and {name!r} both export as {derived!r}"
                    )
                owners[derived] = name
            self.bindings[reader] = lambda n=name: source[n]
            self.bindings[writer] = lambda value, n=name: source.set(n, value)
            self._readers[reader] = name

    @property
    def src(self) -> Source:
        return self.source

    @property
    def destination(self) -> Any:
        return self.source.destination

    dst = destination

    @property
    def errors(self) -> Any:
        return self.source.errors

    err = errors

    @property
    def hooks(self) -> Mapping[str, Hook]:
        return self.source.hooks

    async def wait_all(self) -> dict[str, Any]:
        return await self.source.wait()

    def __getattr__(self, attr: str) -> Any:
        # Only reached when normal lookup fails, so real attributes always win.
        bindings = self.__dict__.get("bindings", {})
        if attr not in bindings:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {attr!r}")
        if attr in self._readers:
            return bindings[attr]()
        return bindings[attr]

    def __setattr__(self, attr: str, value: Any) -> None:
        # Assigning a reader name assigns the property; it must never
        # shadow the binding with a plain attribute.
        readers = self.__dict__.get("_readers", {})
        if attr in readers and attr not in self.__dict__ and not hasattr(type(self), attr):
            self.source.set(readers[attr], value)
            return
        if attr in self.__dict__.get("bindings", {}) and attr not in readers:
            raise AttributeError(f"{attr!r} is a setter binding; call it instead of assigning")
        super().__setattr__(attr, value)

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self.bindings))

    def __repr__(self) -> str:
        return f"Midstream({dict(self.source)!r})"


def create_source(
    middleware: Mapping[str, Any] | None = None,
    defaults: Mapping[str, Any] | None = None,
    destination: Any = None,
    errors: Any = None,
    *,
    dst: Any = None,
    err: Any = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Midstream:
    """Build a Source from a middleware spec and export it.

    destination/dst and errors/err are aliases; each may be a mutable
    mapping, a callable(name, value), or a Sink. Omitted sinks are fresh
    dicts.
    """
    source = Source(
        middleware,
        defaults,
        _pick("destination", destination, "dst", dst),
        _pick("errors", errors, "err", err),
        loop=loop,
    )
    return Midstream(source)
