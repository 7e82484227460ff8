"""Per-property state record.

A Source holds one PropertySlot per name. The slot is the only mutable state
shared between a write (which fills `pending`) and the drain task (which
empties it). Both run on the event loop thread, so no lock is taken.
"""

from __future__ import annotations

import asyncio
from typing import Any, NamedTuple

# Marks "no pending input" / "argument omitted". None is a legitimate value.
UNSET: Any = object()


class Outcome(NamedTuple):
    """Result of one drain: the settled value, or the error that stopped it."""

    value: Any = None
    error: BaseException | None = None

    @property
    def result(self) -> Any:
        """The error object on failure, the value otherwise."""
        return self.error if self.error is not None else self.value


class PropertySlot:
    """Current value, chain, and run bookkeeping for one property."""

    __slots__ = ("name", "value", "chain", "pending", "task", "outcome", "hook")

    def __init__(self, name: str, chain: list) -> None:
        self.name = name
        self.value: Any = None
        self.chain = chain
        self.pending: Any = UNSET
        self.task: asyncio.Task | None = None
        self.outcome: Outcome | None = None
        self.hook = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def __repr__(self) -> str:
        state = "running" if self.running else "idle"
        return f"PropertySlot({self.name!r}, {self.value!r}, {len(self.chain)} steps, {state})"
