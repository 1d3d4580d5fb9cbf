"""
Continuation controller: entry point of the suspending engine.

Usage:
    from reaffect import coroutine as co

    def body():
        return 2 * (yield co.escape(lambda k: k))

    k = co.capture({}, body)
    assert k(2) == 4 and k(3) == 6

Bodies are generator functions called with ``*args``. A generator object is
accepted too, but frames started from one cannot be rewound, so continuations
that include it fail when invoked.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from reaffect.config import EngineConfig
from reaffect.coroutine.continuation import Continuation
from reaffect.coroutine.driver import Driver
from reaffect.coroutine.frames import FrameRecord, FrameTable, Snapshot
from reaffect.errors import ContinuationReuseFailure
from reaffect.handlers import HandlerTable, as_table
from reaffect.stack import current_unit

logger = logging.getLogger(__name__)


def _split_capture_args(handlers: Any, body: Any) -> tuple[Any, Any]:
    if body is None:
        if inspect.isgenerator(handlers):
            return None, handlers
        if handlers is None or not callable(handlers) or isinstance(handlers, HandlerTable):
            raise TypeError("capture() needs a body")
        return None, handlers
    if not (callable(body) or inspect.isgenerator(body)):
        raise TypeError(
            f"capture() body must be a generator function or generator, got {type(body).__name__}"
        )
    return handlers, body


class ContinuationController:
    """Owns the frame arena that continuations replay from.

    Only records that a captured continuation refers to are kept in the
    arena; scopes that finish without being snapshotted leave nothing behind.

    ``close()`` releases the arena; continuations captured under this
    controller then fail with ``ContinuationReuseFailure``.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config if config is not None else EngineConfig.from_env()
        self.frames = FrameTable()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def record(self, handlers: Any, body: Any, args: tuple[Any, ...] = ()) -> FrameRecord:
        if self._closed:
            raise ContinuationReuseFailure("controller is closed")
        table = as_table(handlers).seal()
        factory = None if inspect.isgenerator(body) else body
        return FrameRecord(table, factory, tuple(args))

    def capture(self, handlers: Any = None, body: Any = None, *args: Any) -> Any:
        handlers, body = _split_capture_args(handlers, body)
        record = self.record(handlers, body, args)
        driver = Driver(self, self.config)
        initial = body if record.factory is None else None
        return driver.run(record, initial)

    def continuation(self, snapshot: Snapshot) -> Continuation:
        k = Continuation(self, snapshot, current_unit())
        logger.debug("captured %r", k)
        return k

    def check_resumable(self, continuation: Continuation) -> None:
        if self._closed:
            raise ContinuationReuseFailure(
                f"{continuation!r} cannot be resumed: its controller was closed"
            )
        unit = current_unit()
        if unit != continuation.unit:
            raise ContinuationReuseFailure(
                f"{continuation!r} was captured in {continuation.unit!r} "
                f"and cannot be resumed from {unit!r}"
            )

    def resume(self, continuation: Continuation, value: Any) -> Any:
        logger.debug("resuming %r with %r", continuation, value)
        driver = Driver(self, self.config)
        return driver.replay(continuation.snapshot, value)

    def close(self) -> None:
        self._closed = True
        self.frames = FrameTable()

    def __enter__(self) -> ContinuationController:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def capture(handlers: Any = None, body: Any = None, *args: Any) -> Any:
    """Run a generator body in a new suspending scope with its own controller."""
    return ContinuationController().capture(handlers, body, *args)


__all__ = ["ContinuationController", "capture"]
