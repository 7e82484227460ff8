"""Source — named properties, each guarded by an async middleware chain.

Reading a property is synchronous and always returns the last raw value
assigned. Assigning a new value schedules the property's chain on the
running event loop; the chain's result is written to the destination sink
and its failure to the error sink. Results never flow back into the
property's value.

Per property there is at most one drain task. Writes that arrive while it
is in flight land in a single pending slot (newest wins), and the drain
loops until the slot is empty. A burst of writes therefore costs one extra
chain run, not one per write.

Thread safety: a Source binds to the first event loop that runs one of its
chains (or the `loop` passed in). After that, set() from another thread is
marshaled onto that loop. Loop-thread set() remains synchronous.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterator, NamedTuple

from midstream._slot import UNSET, Outcome, PropertySlot
from midstream.chain import Step, run_chain
from midstream.errors import ChainError, ConfigurationError, UnknownPropertyError
from midstream.settle import Settlement, settle_all
from midstream.sink import Sink, as_sink

logger = logging.getLogger("midstream.source")


class Hook(NamedTuple):
    """Getter/setter/destination-reader bound to one property.

    Unpacks like a tuple:

        value, set_value, settled = source.hook("email")
        await set_value("a@b.c")   # resolves once the run settles
    """

    read: Callable[[], Any]
    write: Callable[[Any], Awaitable[Any]]
    read_destination: Callable[[], Any]


# Compared by value when both sides share one of these exact types; anything
# else (dicts, lists, objects) only by identity.
_SCALARS = (str, bytes, int, float, complex, bool, type(None))


def _same(old: Any, new: Any) -> bool:
    """Strict equality: 1 and True differ, equal but distinct dicts differ."""
    if old is new:
        return True
    return type(old) is type(new) and type(old) in _SCALARS and old == new


def _surface(exc: ChainError) -> Exception:
    """The error callers see: the step's own exception, unless it is not an
    Exception (a stray CancelledError), which would read as a cancellation."""
    return exc.cause if isinstance(exc.cause, Exception) else exc


def _check_name(name: object) -> None:
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"property name must be a non-empty string, got {name!r}")


def _check_steps(name: str, steps) -> None:
    for step in steps:
        if not callable(step):
            raise ConfigurationError(f"middleware for {name!r} contains a non-callable step: {step!r}")


def normalize_entry(name: str, entry: Any) -> tuple[Any, list[Step]]:
    """Turn one middleware spec entry into (default, steps).

    - fn                  -> (None, [fn])
    - None                -> (None, [])
    - [value, fn, ...]    -> (value, [fn, ...])   first item not callable
    - [fn, ...]           -> (None, [fn, ...])
    """
    if entry is None:
        return None, []
    if callable(entry):
        return None, [entry]
    if isinstance(entry, (list, tuple)):
        items = list(entry)
        default = None
        if items and not callable(items[0]):
            default, items = items[0], items[1:]
        _check_steps(name, items)
        return default, items
    raise ConfigurationError(
        f"middleware for {name!r} must be a callable or a list of callables, got {type(entry).__name__}"
    )


class Source(Mapping):
    """A registry of properties with per-property async validation chains.

    Acts as a read-only mapping of name -> current value, so
    `source == {"a": 1}` compares current values. Write with
    `source[name] = value` or `source.set(name, value)`.
    """

    def __init__(
        self,
        middleware: Mapping[str, Any] | None = None,
        defaults: Mapping[str, Any] | None = None,
        destination: Any = None,
        errors: Any = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if middleware is None:
            middleware = {}
        if not isinstance(middleware, Mapping):
            raise ConfigurationError(
                f"middleware must be a mapping of name -> steps, got {type(middleware).__name__}"
            )
        if defaults is not None and not isinstance(defaults, Mapping):
            raise ConfigurationError(f"defaults must be a mapping, got {type(defaults).__name__}")

        self._slots: dict[str, PropertySlot] = {}
        self._hooks: dict[str, Hook] = {}
        self._dst: Sink = as_sink(destination)
        self._err: Sink = as_sink(errors)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None
        if loop is not None:
            self._bind(loop)

        # Normalize everything before defining anything: a bad entry must not
        # leave a half-built source with runs already scheduled.
        entries = []
        for name, entry in middleware.items():
            _check_name(name)
            entries.append((name, *normalize_entry(name, entry)))
        for name, default, steps in entries:
            self.define_property(name, default, *steps)

        for name, value in (defaults or {}).items():
            if name not in self._slots:
                self.define_property(name)
            self.set(name, value)

    # ─── Sinks ───────────────────────────────────────────────────────────────

    @property
    def destination(self) -> Any:
        """The caller's destination store (mapping or callable)."""
        return self._dst.target

    @property
    def errors(self) -> Any:
        """The caller's error store (mapping or callable)."""
        return self._err.target

    @property
    def destination_sink(self) -> Sink:
        return self._dst

    @property
    def error_sink(self) -> Sink:
        return self._err

    @property
    def hooks(self) -> Mapping[str, Hook]:
        """Live read-only view of name -> Hook."""
        return MappingProxyType(self._hooks)

    # ─── Registry ────────────────────────────────────────────────────────────

    def define_property(self, name: str, initial: Any = None, *steps: Step) -> Hook:
        """Register (or redefine) `name` with a chain of steps.

        `initial` is assigned (and so run through the chain) unless None.
        Redefining replaces the chain and the hook; a run of the old chain
        that is already in flight is not cancelled and still writes sinks.
        """
        _check_name(name)
        _check_steps(name, steps)

        old = self._slots.get(name)
        if old is not None and old.running:
            logger.debug("Redefining %r while its previous chain is still running", name)

        slot = PropertySlot(name, list(steps))
        self._slots[name] = slot
        slot.hook = self._hooks[name] = self._make_hook(name)

        if initial is not None:
            self.set(name, initial)
        return slot.hook

    def _make_hook(self, name: str) -> Hook:
        async def write(value: Any) -> Any:
            self.set(name, value)
            return await self.wait(name)

        return Hook(
            read=lambda: self._slot(name).value,
            write=write,
            read_destination=lambda: self._dst.read(name),
        )

    def replace_chain(self, name: str, *steps: Step) -> None:
        """Swap the chain of an existing property for future runs.

        Value and in-flight run are untouched. This is the supported way for
        a step to rewrite its own middleware.
        """
        slot = self._slot(name)
        _check_steps(name, steps)
        slot.chain = list(steps)

    def hook(self, name: str) -> Hook:
        return self._slot(name).hook

    def _slot(self, name: str) -> PropertySlot:
        try:
            return self._slots[name]
        except (KeyError, TypeError):
            raise UnknownPropertyError(name) from None

    # ─── Accessors ───────────────────────────────────────────────────────────

    def __getitem__(self, name: str) -> Any:
        return self._slot(name).value

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def set(self, name: str, value: Any) -> None:
        """Assign a raw value and schedule its chain.

        Assigning the current value is a no-op. Chain errors never surface
        here; they go to the error sink (or to run()/wait() callers).
        """
        slot = self._slot(name)
        if self._loop is not None and threading.current_thread() is not self._loop_thread:
            self._loop.call_soon_threadsafe(self.set, name, value)
            return

        if _same(slot.value, value):
            return
        slot.value = value
        slot.pending = value
        self._schedule(slot)

    __setitem__ = set

    def update(self, values: Mapping[str, Any]) -> None:
        """Assign several properties. Unknown names fail before anything is assigned."""
        for name in values:
            self._slot(name)
        for name, value in values.items():
            self.set(name, value)

    def read_destination(self, name: str) -> Any:
        """Last value committed to the destination for `name`."""
        self._slot(name)
        return self._dst.read(name)

    # ─── Run coordination ────────────────────────────────────────────────────

    def _bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._loop_thread = threading.current_thread()

    def _schedule(self, slot: PropertySlot) -> asyncio.Task | None:
        """Start a drain for `slot` unless one is already in flight."""
        if slot.running:
            logger.debug("Coalescing write to %r into the in-flight run", slot.name)
            return slot.task
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; %r stays pending until the next run", slot.name)
            return None
        if self._loop is None:
            self._bind(loop)
        slot.task = loop.create_task(self._drain(slot), name=f"midstream:{slot.name}")
        return slot.task

    async def _drain(self, slot: PropertySlot) -> Outcome:
        """Run the chain until no pending input is left. Never raises."""
        outcome = Outcome()
        try:
            while slot.pending is not UNSET:
                value, slot.pending = slot.pending, UNSET
                outcome = await self._execute(slot, value)
                slot.outcome = outcome
        finally:
            slot.task = None
        return outcome

    async def _execute(self, slot: PropertySlot, value: Any) -> Outcome:
        try:
            result = await run_chain(self, value, slot.chain)
            await self._dst.write(slot.name, result)
        except ChainError as exc:
            error = _surface(exc)
        except Exception as exc:
            # Destination write failed; treat it like a failed step.
            error = exc
        else:
            await self._clear_error(slot.name)
            return Outcome(result)

        await self._record_error(slot.name, error)
        return Outcome(error=error)

    async def _record_error(self, name: str, error: BaseException) -> None:
        try:
            await self._err.write(name, error)
        except Exception:
            logger.exception("Failed to record error for %r", name)

    async def _clear_error(self, name: str) -> None:
        try:
            await self._err.clear(name)
        except Exception:
            logger.exception("Failed to clear error for %r", name)

    async def run(self, name: str, value: Any = UNSET, ignore_errors: bool = False) -> Any:
        """Run `name`'s chain on `value` (default: its current value).

        Joins the in-flight run if there is one; the newest pending value
        wins. Returns the settled value. On failure raises the step's error,
        or returns it when `ignore_errors` is set. Does not change the
        property's current value.
        """
        slot = self._slot(name)
        slot.pending = slot.value if value is UNSET else value
        task = self._schedule(slot)
        # Shield: a cancelled caller must not cancel the run itself.
        outcome = await asyncio.shield(task)
        if outcome.error is not None and not ignore_errors:
            raise outcome.error
        return outcome.result

    async def wait(self, name: str | None = None) -> Any:
        """Wait until `name` (or every property) has no run in flight.

        Never triggers a run and never raises: returns the last settled
        value, or the error object if the last run failed. With no name,
        returns name -> that result for every property.
        """
        if name is None:
            names = list(self._slots)
            results = await asyncio.gather(*(self.wait(n) for n in names))
            return dict(zip(names, results))

        slot = self._slot(name)
        while slot.running:
            await asyncio.shield(slot.task)
            # A redefinition may have swapped the slot while we waited.
            slot = self._slot(name)
        return slot.outcome.result if slot.outcome is not None else None

    async def validate(self, name: str, record_error: bool = False) -> Any:
        """Dry-run the chain on the current value without committing it.

        Returns the would-be destination value. On failure raises the
        step's error, recording it in the error sink first if asked.
        """
        slot = self._slot(name)
        try:
            return await run_chain(self, slot.value, slot.chain)
        except ChainError as exc:
            if record_error:
                await self._record_error(name, _surface(exc))
            surfaced = _surface(exc)
            if surfaced is exc:
                raise
            raise surfaced from None

    # ─── Aggregation ─────────────────────────────────────────────────────────

    async def run_all(self) -> dict[str, Any]:
        """Run every property concurrently; fail fast on the first error.

        Runs that are still going when the first error surfaces are not
        cancelled; they finish and write their sinks in the background.
        """
        names = list(self._slots)
        values = await asyncio.gather(*(self.run(name) for name in names))
        return dict(zip(names, values))

    async def run_settle(self) -> dict[str, Settlement]:
        """Run every property concurrently and collect every outcome. Never raises."""
        return await settle_all({name: self.run(name) for name in list(self._slots)})

    def __repr__(self) -> str:
        return f"Source({dict(self)!r})"
