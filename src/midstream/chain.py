"""Middleware chains — ordered sync/async transform steps over one value.

A step is any callable. It is called as step(value, raw, source, chain):

- value:  the running accumulator (previous step's output, initially the input)
- raw:    the input the whole chain started with
- source: the owning Source (None when run standalone)
- chain:  the snapshot of steps being executed

Steps only receive as many leading arguments as they have required
positional parameters, so `lambda x: x.strip()` is a valid step and
`def clamp(x, lo=0, hi=10)` keeps its defaults. Classes, builtins and
method descriptors (`str`, `int`, `str.strip`) are converters and get the
value only. A step may return an awaitable; it is awaited before the next
step runs.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
from collections.abc import MutableMapping, MutableSequence, MutableSet
from typing import Any, Callable, Iterable

from midstream.errors import ChainError

logger = logging.getLogger("midstream.chain")

Step = Callable[..., Any]

_MAX_ARGS = 4


def _arity(step: Step) -> int:
    """How many of the four step arguments to pass to `step`.

    Parameters with defaults are never filled from the chain arguments.
    """
    if inspect.isclass(step) or inspect.isbuiltin(step) or inspect.ismethoddescriptor(step):
        # Converters like str, int, str.strip: value only.
        return 1
    try:
        sig = inspect.signature(step)
    except (TypeError, ValueError):
        return 1
    positional = 0
    required = 0
    for param in sig.parameters.values():
        if param.kind is param.VAR_POSITIONAL:
            return _MAX_ARGS
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional += 1
            if param.default is param.empty:
                required += 1
    if required == 0 and positional:
        # def step(value=None): still gets the value.
        return 1
    return min(required, _MAX_ARGS)


def _detach(value: Any) -> Any:
    """Shallow-copy mutable containers so a step can't mutate the caller's object."""
    if isinstance(value, (MutableMapping, MutableSequence, MutableSet)):
        return copy.copy(value)
    return value


def _cancelling() -> bool:
    """Is the current task being cancelled from outside? (False before 3.11.)"""
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)
    return bool(cancelling and cancelling())


async def run_chain(source: Any, value: Any, chain: Iterable[Step] | None) -> Any:
    """Run `value` through every step of `chain` in order and return the result.

    The chain is snapshotted first: replacing or mutating the registered chain
    while this runs only affects later runs. Raises ChainError at the first
    failing step; the remaining steps are skipped.
    """
    steps = tuple(chain or ())
    if not steps:
        return value

    acc = value
    for index, step in enumerate(steps):
        args = (_detach(acc), _detach(value), source, steps)[: _arity(step)]
        try:
            result = step(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.debug("step %d/%d failed: %r", index + 1, len(steps), exc)
            raise ChainError(index, exc) from exc
        except asyncio.CancelledError as exc:
            if _cancelling():
                raise
            # Raised by the step itself, not a cancel of this task.
            logger.debug("step %d/%d raised CancelledError", index + 1, len(steps))
            raise ChainError(index, exc) from exc
        acc = result

    return acc
