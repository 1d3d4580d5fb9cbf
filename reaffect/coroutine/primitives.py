"""
Control primitives yielded by generator bodies.

A body talks to the driver only through what it yields:

    def body():
        name = yield perform("input")
        yield perform("output", f"hi {name}")
        return 2 * (yield escape(lambda k: k))

The constructors below only build values; nothing happens until the driver
interprets them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from reaffect.effects import ABORTED, Effect
from reaffect.handlers import accepts_positional

if TYPE_CHECKING:
    from reaffect.context import EffectContext


class ControlPrimitive:
    pass


@dataclass(frozen=True)
class Perform(ControlPrimitive):
    effect: Effect

    @property
    def key(self) -> Any:
        return self.effect.key


@dataclass(frozen=True)
class Escape(ControlPrimitive):
    """Leave a scope; ``scope=None`` targets the nearest enclosing one."""

    value: Any = None
    block: Callable[..., Any] | None = None
    scope: EffectContext | None = field(default=None, compare=False)

    @property
    def wants_continuation(self) -> bool:
        return self.block is not None and accepts_positional(self.block)


@dataclass(frozen=True)
class WithHandlers(ControlPrimitive):
    """Run ``body(*args)`` as a nested scope inside the same driver."""

    handlers: Any
    body: Any
    args: tuple[Any, ...] = ()


def perform(key: Any, *args: Any, block: Callable[..., Any] | None = None) -> Perform:
    return Perform(Effect(key, args, block))


def escape(
    value: Any = None,
    *,
    block: Callable[..., Any] | None = None,
    scope: EffectContext | None = None,
) -> Escape:
    if block is None and callable(value):
        block, value = value, None
    return Escape(value, block, scope)


def abort(value: Any = ABORTED, *, scope: EffectContext | None = None) -> Escape:
    return Escape(block=lambda: value, scope=scope)


def with_handlers(handlers: Any, body: Any, *args: Any) -> WithHandlers:
    return WithHandlers(handlers, body, args)


__all__ = [
    "ControlPrimitive",
    "Escape",
    "Perform",
    "WithHandlers",
    "abort",
    "escape",
    "perform",
    "with_handlers",
]
