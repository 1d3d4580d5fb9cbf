from __future__ import annotations

from typing import Any


class EffectError(RuntimeError):
    """Base class for errors raised by the effect runtime."""


class UnhandledEffect(EffectError):
    """Raised when no context in the chain has a handler for an effect."""

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(f"No effect handler for {key!r}")


class ContextMissing(EffectError):
    """Raised when the ambient lookup finds no active capture scope."""

    def __init__(self, message: str = "No effect context present") -> None:
        super().__init__(message)


class EscapeOutsideCapture(ContextMissing):
    """Raised when escape has no live capture scope to target."""

    def __init__(self, message: str = "escape called outside of capture") -> None:
        super().__init__(message)


class ContinuationReuseFailure(EffectError):
    """Raised when a continuation can no longer be rewound."""


class ContinuationUnavailable(EffectError):
    """Raised when an escape block asks for a continuation that cannot be captured."""


class HandlerTableSealed(EffectError):
    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(
            f"Cannot register a handler for {key!r}: the table was sealed by its first perform"
        )


class StepLimitExceeded(EffectError):
    def __init__(self, max_steps: int) -> None:
        self.max_steps = max_steps
        super().__init__(f"driver exceeded max_steps ({max_steps})")


__all__ = [
    "ContextMissing",
    "ContinuationReuseFailure",
    "ContinuationUnavailable",
    "EffectError",
    "EscapeOutsideCapture",
    "HandlerTableSealed",
    "StepLimitExceeded",
    "UnhandledEffect",
]
