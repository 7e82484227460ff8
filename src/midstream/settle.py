"""Settle-all combinator — gather awaitables without short-circuiting.

Every awaitable is mapped to a tagged Settlement, so one failure never hides
the others. Results are keyed by name, not position.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Mapping

FULFILLED = "fulfilled"
REJECTED = "rejected"


@dataclass(frozen=True)
class Settlement:
    """Outcome of one settled awaitable."""

    status: str
    value: Any = None
    reason: BaseException | None = None

    @classmethod
    def fulfilled(cls, value: Any) -> Settlement:
        return cls(FULFILLED, value=value)

    @classmethod
    def rejected(cls, reason: BaseException) -> Settlement:
        return cls(REJECTED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == FULFILLED


async def _settle(aw: Awaitable[Any]) -> Settlement:
    try:
        return Settlement.fulfilled(await aw)
    except Exception as exc:
        return Settlement.rejected(exc)


async def settle_all(awaitables: Mapping[str, Awaitable[Any]]) -> dict[str, Settlement]:
    """Await everything concurrently; return name -> Settlement. Never raises."""
    names = list(awaitables)
    results = await asyncio.gather(*(_settle(awaitables[name]) for name in names))
    return dict(zip(names, results))
