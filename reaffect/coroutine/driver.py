"""
Driver loop of the suspending engine.

``K`` holds the live scope levels, outermost first. Every step resumes the
innermost body generator and interprets what it yields:

- ``Perform``: resolved through the innermost context chain; the handler runs
  inline and its result is sent back (errors are thrown back at the yield).
- ``WithHandlers``: a new level is pushed on top.
- ``Escape``: levels are unwound down to the target scope, the block is
  evaluated (with a ``Continuation`` if it asks for one) and its value becomes
  the result of the target scope.

Each level's context is also pushed on the ambient ``ContextStack`` while the
level is live, so plain ``reaffect.perform`` calls from handlers and body code
see the same chain. Those made by body code are journaled on the level and
served from the journal when a continuation replays it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from loguru import logger as loguru_logger

from reaffect.config import EngineConfig
from reaffect.context import EffectContext, EscapeSignal, FrameStatus, make_escape
from reaffect.coroutine.frames import (
    START,
    Control,
    Start,
    FrameRecord,
    Level,
    Returned,
    Send,
    Snapshot,
    Throw,
)
from reaffect.coroutine.primitives import ControlPrimitive, Escape, Perform, WithHandlers
from reaffect.errors import (
    ContinuationUnavailable,
    EscapeOutsideCapture,
    StepLimitExceeded,
)
from reaffect.stack import ContextStack, current_context_or_none

if TYPE_CHECKING:
    from reaffect.coroutine.controller import ContinuationController

logger = logging.getLogger(__name__)
trace = loguru_logger.bind(component="driver")


class Done:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value


class Driver:
    def __init__(self, controller: ContinuationController, config: EngineConfig) -> None:
        self.controller = controller
        self.config = config
        self.K: list[Level] = []
        self.root_parent = current_context_or_none()
        self.steps = 0

    # ------------------------------------------------------------------
    # entry points

    def run(self, record: FrameRecord, initial: Any = None) -> Any:
        try:
            level = self._push_level(record)
            level.pending = initial
            return self._loop(START)
        finally:
            self._teardown()

    def replay(self, snapshot: Snapshot, value: Any) -> Any:
        try:
            for entry in snapshot:
                level = self._push_level(self.controller.frames[entry.index])
                level.replay(entry)
                level.frame.finish(FrameStatus.SUSPENDED)
            self.K[-1].frame.finish(FrameStatus.RUNNING)
            return self._loop(Send(value))
        finally:
            self._teardown()

    # ------------------------------------------------------------------
    # levels

    def _push_level(self, record: FrameRecord) -> Level:
        parent = self.K[-1].context if self.K else self.root_parent
        context = EffectContext(record.table, parent)
        context.frame.strategy = "coroutine"
        level = Level(record, context)
        level.token = ContextStack.push(context)
        self.K.append(level)
        return level

    def _pop_level(self, status: FrameStatus) -> Level:
        level = self.K.pop()
        level.close()
        ContextStack.pop(level.context, level.token)
        level.frame.finish(status)
        if self.K:
            self.K[-1].frame.finish(FrameStatus.RUNNING)
        return level

    def _teardown(self) -> None:
        while self.K:
            self._pop_level(FrameStatus.ABORTED)

    # ------------------------------------------------------------------
    # loop

    def _loop(self, control: Control | Done) -> Any:
        while not isinstance(control, Done):
            self.steps += 1
            max_steps = self.config.max_steps
            if max_steps is not None and self.steps > max_steps:
                raise StepLimitExceeded(max_steps)
            if self.config.debug:
                trace.debug("step {} control={} K={}", self.steps, control, self._format_k())
            control = self._step(control)
        if self.config.debug:
            trace.debug("done after {} steps: {!r}", self.steps, control.value)
        return control.value

    def _step(self, control: Control) -> Control | Done:
        level = self.K[-1]
        try:
            if isinstance(control, Start):
                outcome = level.start()
            else:
                assert isinstance(control, (Send, Throw))
                outcome = level.resume(control)
        except EscapeSignal as signal:
            level.generator = None
            return self._on_signal(signal, resumable=False)
        except Exception as error:
            return self._fail(error)
        return self._handle_outcome(outcome)

    def _handle_outcome(self, outcome: Any) -> Control | Done:
        if isinstance(outcome, Returned):
            return self._complete(outcome.value)
        return self._interpret(outcome.value)

    def _complete(self, value: Any) -> Control | Done:
        self._pop_level(FrameStatus.COMPLETED)
        if not self.K:
            return Done(value)
        return Send(value)

    def _fail(self, error: Exception) -> Control:
        self._pop_level(FrameStatus.FAILED)
        if not self.K:
            raise error
        return Throw(error)

    # ------------------------------------------------------------------
    # primitives

    def _interpret(self, yielded: Any) -> Control | Done:
        if isinstance(yielded, Perform):
            return self._perform(yielded)
        if isinstance(yielded, WithHandlers):
            return self._with_handlers(yielded)
        if isinstance(yielded, Escape):
            return self._escape(yielded)
        kind = "control primitive" if isinstance(yielded, ControlPrimitive) else "value"
        return Throw(
            TypeError(
                f"Body yielded unsupported {kind} {type(yielded).__name__}; "
                "yield perform(), escape() or with_handlers()"
            )
        )

    def _perform(self, prim: Perform) -> Control | Done:
        level = self.K[-1]
        effect = prim.effect
        level.frame.finish(FrameStatus.SUSPENDED)
        try:
            result = level.context.dispatch(effect.key, effect.args, effect.block)
        except EscapeSignal as signal:
            return self._on_signal(signal, resumable=True)
        except Exception as error:
            level.frame.finish(FrameStatus.RUNNING)
            return Throw(error)
        level.frame.finish(FrameStatus.RUNNING)
        return Send(result)

    def _with_handlers(self, prim: WithHandlers) -> Control:
        try:
            record = self.controller.record(prim.handlers, prim.body, prim.args)
        except TypeError as error:
            return Throw(error)
        self.K[-1].frame.finish(FrameStatus.SUSPENDED)
        level = self._push_level(record)
        if record.factory is None:
            level.pending = prim.body
        return START

    def _escape(self, prim: Escape) -> Control | Done:
        if prim.scope is None:
            target = len(self.K) - 1
        else:
            target = self._index_of(prim.scope)
            if target is None:
                # Escaping past this driver: the owning capture finishes the job.
                try:
                    signal = make_escape(prim.scope.frame, prim.value, prim.block)
                except EscapeOutsideCapture as error:
                    return Throw(error)
                raise signal
        block = prim.block
        if block is None:
            value = prim.value
            block = lambda: value  # noqa: E731
        return self._escape_to(target, block, prim.wants_continuation, resumable=True)

    def _on_signal(self, signal: EscapeSignal, resumable: bool) -> Control | Done:
        target = self._index_of_frame(signal)
        if target is None:
            if not signal.target.live:
                raise EscapeOutsideCapture(
                    f"escape target {signal.target!r} has already exited"
                ) from None
            raise signal
        block = signal.block
        if block is None:
            value = signal.value
            block = lambda: value  # noqa: E731
        return self._escape_to(target, block, signal.wants_continuation, resumable)

    def _index_of(self, context: EffectContext) -> int | None:
        for i, level in enumerate(self.K):
            if level.context is context:
                return i
        return None

    def _index_of_frame(self, signal: EscapeSignal) -> int | None:
        for i, level in enumerate(self.K):
            if level.frame is signal.target:
                return i
        return None

    def _escape_to(
        self,
        target: int,
        block: Callable[..., Any],
        wants_continuation: bool,
        resumable: bool,
    ) -> Control | Done:
        snapshot: Snapshot | None = None
        if wants_continuation and resumable:
            frames = self.controller.frames
            snapshot = tuple(level.snapshot(frames.add(level.record)) for level in self.K[target:])
        while len(self.K) > target + 1:
            self._pop_level(FrameStatus.ABORTED)
        self.K[target].close()
        self.K[target].frame.finish(FrameStatus.ABORTED)
        frame_id = self.K[target].frame.frame_id
        logger.debug("escape to capture #%s", frame_id)

        try:
            if not wants_continuation:
                value = block()
            elif snapshot is None:
                raise ContinuationUnavailable(
                    "escape block takes a continuation, but the escape was raised from "
                    "body code rather than a yielded primitive or a handler"
                )
            else:
                value = block(self.controller.continuation(snapshot))
        except EscapeSignal as signal:
            self._pop_level(FrameStatus.ABORTED)
            return self._on_signal(signal, resumable=False)
        except Exception as error:
            self._pop_level(FrameStatus.ABORTED)
            if not self.K:
                raise
            return Throw(error)

        self._pop_level(FrameStatus.ABORTED)
        if not self.K:
            return Done(value)
        return Send(value)

    def _format_k(self) -> str:
        parts = []
        for level in self.K:
            status = level.frame.status.value
            parts.append(f"#{level.frame.frame_id}({status}, h={len(level.history)})")
        return "[" + ", ".join(parts) + "]"


__all__ = ["Done", "Driver"]
