from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

from reaffect.coroutine.frames import Snapshot
from reaffect.stack import ExecutionUnit

if TYPE_CHECKING:
    from reaffect.coroutine.controller import ContinuationController

_continuation_id_counter = itertools.count(1)


class Continuation:
    """The rest of a suspended computation, up to the return of its capture.

    Calling ``k(value)`` rebuilds the captured scope levels, resumes the
    suspension point as if it had evaluated to ``value`` and returns whatever
    the resumed scope completes (or escapes) with. A continuation may be
    called any number of times; every call replays the same immutable
    snapshot.

    Resumption is by replay, not by copying the suspended stack: each call
    runs every captured body again from its start up to the suspension
    point. Values the engine sent into the body and the results of effects
    the body performed are fed back from the snapshot, so handlers do not run
    again, but any other code before the suspension point (appending to a
    list, say) runs once per call.
    """

    def __init__(
        self,
        controller: ContinuationController,
        snapshot: Snapshot,
        unit: ExecutionUnit,
    ) -> None:
        self.cont_id = next(_continuation_id_counter)
        self.controller = controller
        self.snapshot = snapshot
        self.unit = unit
        self.invocations = 0

    @property
    def depth(self) -> int:
        return len(self.snapshot)

    def __call__(self, value: Any = None) -> Any:
        self.controller.check_resumable(self)
        self.invocations += 1
        return self.controller.resume(self, value)

    def __repr__(self) -> str:
        return (
            f"Continuation#{self.cont_id}(depth={self.depth}, "
            f"invocations={self.invocations})"
        )


__all__ = ["Continuation"]
