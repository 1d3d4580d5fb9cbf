"""
Effect contexts and capture frames.

An ``EffectContext`` is one node of the dynamically-scoped handler chain. It
owns a ``HandlerTable`` and points at the context that was active when its
capture scope was entered. Resolution walks the chain nearest-first; at every
node the order is exact key, category, wildcard.

A ``CaptureFrame`` is the runtime state of one capture invocation. Escapes are
keyed to frame identity, so a nested escape never lands in the wrong scope.
"""

from __future__ import annotations

import enum
import itertools
import logging
from collections.abc import Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from reaffect.effects import ABORTED
from reaffect.errors import EscapeOutsideCapture, UnhandledEffect
from reaffect.handlers import Handler, HandlerEntry, HandlerTable, accepts_positional

if TYPE_CHECKING:
    from reaffect.coroutine.frames import Journal
    from reaffect.proxy import EffectProxy

logger = logging.getLogger(__name__)

_frame_id_counter = itertools.count(1)

_NO_VALUE: Any = object()


def _next_frame_id() -> int:
    return next(_frame_id_counter)


class FrameStatus(enum.Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


class CaptureFrame:
    def __init__(self, strategy: str = "callback") -> None:
        self.frame_id = _next_frame_id()
        self.strategy = strategy
        self.status = FrameStatus.RUNNING

    @property
    def live(self) -> bool:
        return self.status in (FrameStatus.RUNNING, FrameStatus.SUSPENDED)

    def finish(self, status: FrameStatus) -> None:
        self.status = status

    def __repr__(self) -> str:
        return f"CaptureFrame#{self.frame_id}({self.strategy}, {self.status.value})"


class EscapeSignal(BaseException):
    """Non-local exit towards one specific capture frame.

    Derives from ``BaseException`` so that ``except Exception`` clauses in a
    body do not intercept the transfer.
    """

    def __init__(
        self,
        target: CaptureFrame,
        value: Any = None,
        block: Callable[..., Any] | None = None,
    ) -> None:
        super().__init__(target)
        self.target = target
        self.value = value
        self.block = block

    @property
    def wants_continuation(self) -> bool:
        return self.block is not None and accepts_positional(self.block)

    def evaluate(self, continuation: Any = _NO_VALUE) -> Any:
        if self.block is None:
            return self.value
        if continuation is not _NO_VALUE:
            return self.block(continuation)
        return self.block()


def make_escape(
    target: CaptureFrame,
    value: Any = None,
    block: Callable[..., Any] | None = None,
) -> EscapeSignal:
    """Build the signal for ``escape(value)``; a callable value is a block."""
    if not target.live:
        raise EscapeOutsideCapture(f"escape target {target!r} has already exited")
    if block is None and callable(value):
        block, value = value, None
    return EscapeSignal(target, value, block)


class EffectContext:
    def __init__(
        self,
        table: HandlerTable | None = None,
        parent: EffectContext | None = None,
        frame: CaptureFrame | None = None,
    ) -> None:
        self.table = table if table is not None else HandlerTable()
        self.parent = parent
        self.frame = frame if frame is not None else CaptureFrame()
        self.journal: Journal | None = None

    def register(self, key: Any, handler: Handler | HandlerEntry) -> EffectContext:
        self.table.register(key, handler)
        return self

    def register_all(self, mapping: Mapping[Any, Handler | HandlerEntry]) -> EffectContext:
        self.table.register_all(mapping)
        return self

    def register_wildcard(self, handler: Handler | HandlerEntry) -> EffectContext:
        self.table.register_wildcard(handler)
        return self

    def resolve(self, key: Any) -> HandlerEntry | None:
        return self.table.resolve(key)

    def chain(self) -> Iterator[EffectContext]:
        ctx: EffectContext | None = self
        while ctx is not None:
            yield ctx
            ctx = ctx.parent

    @property
    def depth(self) -> int:
        return sum(1 for _ in self.chain())

    def lookup(self, key: Any) -> tuple[HandlerEntry, EffectContext] | None:
        for ctx in self.chain():
            entry = ctx.resolve(key)
            if entry is not None:
                return entry, ctx
        return None

    def perform(
        self,
        key: Any,
        *args: Any,
        block: Callable[..., Any] | None = None,
    ) -> Any:
        for ctx in self.chain():
            if ctx.journal is not None and ctx.journal.recording:
                return ctx.journal.perform(self, key, args, block)
        return self.dispatch(key, args, block)

    def dispatch(
        self,
        key: Any,
        args: tuple[Any, ...] = (),
        block: Callable[..., Any] | None = None,
    ) -> Any:
        """Resolve and call the handler for ``key``, bypassing any journal."""
        self.table.seal()
        found = self.lookup(key)
        if found is None:
            raise UnhandledEffect(key)
        entry, owner = found
        logger.debug("perform %r handled by context #%s", key, owner.frame.frame_id)
        return entry.invoke(key, args, block)

    def escape(self, value: Any = None, *, block: Callable[..., Any] | None = None) -> Any:
        raise make_escape(self.frame, value, block)

    def abort(self, value: Any = ABORTED) -> Any:
        raise make_escape(self.frame, lambda: value)

    @property
    def effects(self) -> EffectProxy:
        from reaffect.proxy import EffectProxy

        return EffectProxy(self.perform)

    def __repr__(self) -> str:
        return f"EffectContext(#{self.frame.frame_id}, {self.table!r}, depth={self.depth})"


__all__ = [
    "CaptureFrame",
    "EffectContext",
    "EscapeSignal",
    "FrameStatus",
    "make_escape",
]
