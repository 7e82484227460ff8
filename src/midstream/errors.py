"""Exception kinds raised by midstream."""

from __future__ import annotations


class MidstreamError(Exception):
    """Base class for all midstream errors."""


class ConfigurationError(MidstreamError, ValueError):
    """Malformed middleware spec, bad property name, or bad sink/option."""


class UnknownPropertyError(MidstreamError, KeyError):
    """A name that was never registered on the source."""

    def __init__(self, name: object) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"property {self.name!r} does not exist"


class ChainError(MidstreamError):
    """A middleware step raised. Carries the step index and the original error."""

    def __init__(self, step: int, cause: BaseException) -> None:
        super().__init__(f"middleware step {step} failed: {cause!r}")
        self.step = step
        self.cause = cause
