"""
Callback capture engine.

``capture`` runs a body with a set of handlers active. ``perform`` calls the
nearest matching handler inline and returns its result; the body never
suspends. ``escape`` leaves the nearest enclosing capture immediately, skipping
every frame in between, and makes that capture return the escape value.

Example:
    >>> def fact(n):
    ...     perform("log", f"fact({n})")
    ...     return 1 if n <= 1 else n * fact(n - 1)
    >>> capture({"log": lambda msg: None}, lambda: fact(5))
    120
    >>> capture(lambda: [1, escape(99), 2])
    99
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from reaffect.context import (
    CaptureFrame,
    EffectContext,
    EscapeSignal,
    FrameStatus,
    make_escape,
)
from reaffect.effects import ABORTED
from reaffect.errors import ContextMissing, ContinuationUnavailable, EscapeOutsideCapture
from reaffect.handlers import Handler, HandlerTable, accepts_positional, as_table
from reaffect.stack import ContextStack, current_context, current_context_or_none

logger = logging.getLogger(__name__)

Body = Callable[..., Any]


def _split_capture_args(handlers: Any, body: Body | None) -> tuple[Any, Body]:
    if body is None:
        if handlers is None or not callable(handlers) or isinstance(handlers, HandlerTable):
            raise TypeError("capture() needs a body")
        return None, handlers
    if not callable(body):
        raise TypeError(f"capture() body must be callable, got {type(body).__name__}")
    return handlers, body


def run_body(body: Body, context: EffectContext) -> Any:
    if accepts_positional(body):
        return body(context)
    return body()


def capture(handlers: Any = None, body: Body | None = None) -> Any:
    """Run ``body`` inside a new capture scope.

    ``handlers`` may be ``None``, a mapping, a ``HandlerTable`` or a single
    callable used as the wildcard handler. ``capture(body)`` runs the body
    with no handlers of its own. A body that takes a positional parameter is
    passed the new ``EffectContext``.

    Returns the body's value, or the value of an ``escape``/``abort`` that
    targeted this scope.
    """
    handlers, body = _split_capture_args(handlers, body)
    frame = CaptureFrame("callback")
    context = EffectContext(as_table(handlers), current_context_or_none(), frame)
    token = ContextStack.push(context)
    logger.debug("enter capture #%s (depth %d)", frame.frame_id, ContextStack.depth())
    try:
        result = run_body(body, context)
    except EscapeSignal as signal:
        if signal.target is not frame:
            frame.finish(FrameStatus.ABORTED)
            if not signal.target.live:
                raise EscapeOutsideCapture(
                    f"escape target {signal.target!r} has already exited"
                ) from None
            raise
        if signal.wants_continuation:
            frame.finish(FrameStatus.ABORTED)
            raise ContinuationUnavailable(
                "escape block takes a continuation, which the callback engine cannot "
                "capture; use reaffect.coroutine.capture"
            ) from None
        logger.debug("escape to capture #%s", frame.frame_id)
        frame.finish(FrameStatus.ABORTED)
        return signal.evaluate()
    except BaseException:
        frame.finish(FrameStatus.FAILED)
        raise
    else:
        frame.finish(FrameStatus.COMPLETED)
        return result
    finally:
        ContextStack.pop(context, token)
        logger.debug("exit capture #%s (%s)", frame.frame_id, frame.status.value)


def perform(key: Any, *args: Any, block: Callable[..., Any] | None = None) -> Any:
    return current_context().perform(key, *args, block=block)


def escape(value: Any = None, *, block: Callable[..., Any] | None = None) -> Any:
    """Leave the nearest enclosing capture with ``value``.

    A callable ``value`` (or ``block=``) is evaluated lazily, once the body has
    been unwound, and its result becomes the capture's value. Never returns.
    """
    try:
        context = current_context()
    except ContextMissing:
        raise EscapeOutsideCapture() from None
    raise make_escape(context.frame, value, block)


def abort(value: Any = ABORTED) -> Any:
    """Escape with ``value``, or with the ``ABORTED`` marker when none is given."""
    try:
        context = current_context()
    except ContextMissing:
        raise EscapeOutsideCapture("abort called outside of capture") from None
    return context.abort(value)


class Scope:
    """A deferred capture: a handler set plus an optional default body.

    Builders chain, so handlers can be attached before or after the body::

        wrap(lambda: mul(2, 3)).on("log", print)()
        on({"get": read, "set": write}).capture(main)
    """

    def __init__(self, handlers: Any = None, body: Body | None = None) -> None:
        self.table = as_table(handlers)
        self.body = body

    def on(self, key: Any, handler: Handler | None = None) -> Scope:
        self.table.on(key, handler)
        return self

    def handle(self, handler: Handler) -> Scope:
        self.table.handle(handler)
        return self

    def capture(self, body: Body | None = None) -> Any:
        body = body if body is not None else self.body
        if body is None:
            raise TypeError("Scope has no body to run")
        return capture(self.table, body)

    def __call__(self, body: Body | None = None) -> Any:
        return self.capture(body)

    def __repr__(self) -> str:
        return f"Scope({self.table!r})"


def on(key: Any, handler: Handler | None = None) -> Scope:
    return Scope().on(key, handler)


def handle(handler: Handler) -> Scope:
    return Scope().handle(handler)


def wrap(body: Body, handlers: Mapping[Any, Handler] | HandlerTable | None = None) -> Scope:
    return Scope(handlers, body)


def call(body: Body) -> Any:
    return capture(None, body)


__all__ = [
    "Scope",
    "abort",
    "call",
    "capture",
    "escape",
    "handle",
    "on",
    "perform",
    "run_body",
    "wrap",
]
