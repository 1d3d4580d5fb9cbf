"""
Per-execution-unit stack of active effect contexts.

The stack lives in a ``ContextVar``, which already gives every thread and every
asyncio task its own view. Values are also tagged with the unit that wrote
them: a task inherits a *copy* of its parent's context variables, and an
inherited stack reads as empty so contexts are never shared across units.

Push and pop are strictly paired through ``ContextVar`` tokens; ``scoped``
wraps the pair in ``try/finally``.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any

from reaffect.context import EffectContext
from reaffect.errors import ContextMissing, EffectError


@dataclass(frozen=True)
class ExecutionUnit:
    thread_id: int
    task: Any = None

    def __repr__(self) -> str:
        if self.task is None:
            return f"ExecutionUnit(thread={self.thread_id})"
        return f"ExecutionUnit(thread={self.thread_id}, task={id(self.task):#x})"


def current_unit() -> ExecutionUnit:
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    return ExecutionUnit(threading.get_ident(), task)


@dataclass(frozen=True)
class _StackValue:
    unit: ExecutionUnit
    contexts: tuple[EffectContext, ...]


_stack_var: ContextVar[_StackValue | None] = ContextVar("reaffect_context_stack", default=None)


class ContextStack:
    """Accessors for the current unit's context stack."""

    @staticmethod
    def contexts() -> tuple[EffectContext, ...]:
        value = _stack_var.get()
        if value is None or value.unit != current_unit():
            return ()
        return value.contexts

    @classmethod
    def top(cls) -> EffectContext | None:
        contexts = cls.contexts()
        return contexts[-1] if contexts else None

    @classmethod
    def depth(cls) -> int:
        return len(cls.contexts())

    @classmethod
    def push(cls, context: EffectContext) -> Token[_StackValue | None]:
        contexts = cls.contexts()
        return _stack_var.set(_StackValue(current_unit(), contexts + (context,)))

    @classmethod
    def pop(cls, context: EffectContext, token: Token[_StackValue | None]) -> None:
        if cls.top() is not context:
            raise EffectError(
                f"Unbalanced context stack: expected {context!r} on top, found {cls.top()!r}"
            )
        _stack_var.reset(token)


@contextmanager
def scoped(context: EffectContext) -> Iterator[EffectContext]:
    token = ContextStack.push(context)
    try:
        yield context
    finally:
        ContextStack.pop(context, token)


def current_context() -> EffectContext:
    context = ContextStack.top()
    if context is None:
        raise ContextMissing()
    return context


def current_context_or_none() -> EffectContext | None:
    return ContextStack.top()


__all__ = [
    "ContextStack",
    "ExecutionUnit",
    "current_context",
    "current_context_or_none",
    "current_unit",
    "scoped",
]
