"""
Frame arena and live frames for the suspending engine.

Python generators are one-shot and cannot be copied, so a suspended computation
is not saved as a stack. Instead:

- ``FrameTable`` is an append-only arena of immutable ``FrameRecord``s. A
  record enters it only when a snapshot refers to it. A record describes
  how to rebuild one scope level: its sealed handler table and the factory
  that creates its body generator.
- A live ``Level`` pairs a record with a running generator and the history of
  values (and errors) sent into it since it started.
- A ``Journal`` records the outcome of every effect the body performs
  directly through ``reaffect.perform`` while it runs.
- A ``Snapshot`` is a tuple of ``(record index, history, journal, primitive
  type)``. Rebuilding a level means calling the factory again and replaying
  the history; handlers are not re-invoked because their results are in the
  history and the journal. Plain body code before the suspension point does
  run again.

Each replay builds fresh generators from the same immutable snapshot, so
replays never observe each other.
"""

from __future__ import annotations

import inspect
import logging
from collections import deque
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Any

from reaffect.context import CaptureFrame, EffectContext
from reaffect.errors import ContinuationReuseFailure
from reaffect.handlers import HandlerTable

logger = logging.getLogger(__name__)

BodyGenerator = Generator[Any, Any, Any]


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Send:
    value: Any


@dataclass(frozen=True)
class Throw:
    error: BaseException


Resumption = Send | Throw
Control = Start | Send | Throw

START = Start()


@dataclass(frozen=True)
class FrameRecord:
    table: HandlerTable
    factory: Callable[..., Any] | None
    args: tuple[Any, ...] = ()

    @property
    def rewindable(self) -> bool:
        return self.factory is not None


class FrameTable:
    def __init__(self) -> None:
        self._records: list[FrameRecord] = []
        self._indices: dict[int, int] = {}

    def add(self, record: FrameRecord) -> int:
        """Intern ``record`` and return its index; a record is stored once."""
        index = self._indices.get(id(record))
        if index is None:
            self._records.append(record)
            index = len(self._records) - 1
            self._indices[id(record)] = index
        return index

    def __getitem__(self, index: int) -> FrameRecord:
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)


@dataclass(frozen=True)
class Recorded:
    key: Any
    outcome: Resumption


def _same_key(recorded: Any, key: Any) -> bool:
    if recorded is key:
        return True
    if type(recorded) is not type(key):
        return False
    # Identity-compared instances are rebuilt on replay; their type is all that can match.
    return type(key).__eq__ is object.__eq__ or bool(recorded == key)


class Journal:
    """Outcomes of the effects a body performs directly while it is running.

    ``recording`` is only set while the body's own code runs, so handler code
    driven by the engine is never journaled. On replay the loaded entries are
    served in order instead of calling the handlers again.
    """

    def __init__(self) -> None:
        self.entries: list[Recorded] = []
        self.recording = False
        self.diverged = False
        self._pending: deque[Recorded] = deque()

    def load(self, entries: tuple[Recorded, ...]) -> None:
        self._pending = deque(entries)

    @property
    def exhausted(self) -> bool:
        return not self._pending

    def perform(
        self,
        context: EffectContext,
        key: Any,
        args: tuple[Any, ...],
        block: Callable[..., Any] | None,
    ) -> Any:
        if self._pending:
            recorded = self._pending.popleft()
            if not _same_key(recorded.key, key):
                self.diverged = True
                raise ContinuationReuseFailure(
                    f"replay performed {key!r} where {recorded.key!r} was recorded"
                )
            self.entries.append(recorded)
            if isinstance(recorded.outcome, Throw):
                raise recorded.outcome.error
            return recorded.outcome.value

        self.recording = False
        try:
            value = context.dispatch(key, args, block)
        except Exception as error:
            self.entries.append(Recorded(key, Throw(error)))
            raise
        finally:
            self.recording = True
        self.entries.append(Recorded(key, Send(value)))
        return value


@dataclass(frozen=True)
class SnapshotEntry:
    index: int
    history: tuple[Resumption, ...]
    primitive_type: type
    journal: tuple[Recorded, ...] = ()


Snapshot = tuple[SnapshotEntry, ...]


@dataclass(frozen=True)
class Yielded:
    value: Any


@dataclass(frozen=True)
class Returned:
    value: Any


Outcome = Yielded | Returned


@dataclass
class Level:
    """One live scope level: an effect context and its body generator."""

    record: FrameRecord
    context: EffectContext
    generator: BodyGenerator | None = None
    history: list[Resumption] = field(default_factory=list)
    journal: Journal = field(default_factory=Journal)
    last_yielded: Any = None
    pending: BodyGenerator | None = None
    token: Any = None

    def __post_init__(self) -> None:
        self.context.journal = self.journal

    @property
    def frame(self) -> CaptureFrame:
        return self.context.frame

    def start(self) -> Outcome:
        if self.pending is not None:
            self.generator, self.pending = self.pending, None
        else:
            assert self.record.factory is not None
            self.journal.recording = True
            try:
                produced = self.record.factory(*self.record.args)
            finally:
                self.journal.recording = False
            if not inspect.isgenerator(produced):
                return Returned(produced)
            self.generator = produced
        return self._step(lambda gen: next(gen))

    def resume(self, control: Resumption) -> Outcome:
        self.history.append(control)
        if isinstance(control, Send):
            return self._step(lambda gen: gen.send(control.value))
        return self._step(lambda gen: gen.throw(control.error))

    def _step(self, action: Callable[[BodyGenerator], Any]) -> Outcome:
        assert self.generator is not None
        self.journal.recording = True
        try:
            yielded = action(self.generator)
        except StopIteration as stop:
            self.generator = None
            return Returned(stop.value)
        finally:
            self.journal.recording = False
        self.last_yielded = yielded
        return Yielded(yielded)

    def snapshot(self, index: int) -> SnapshotEntry:
        return SnapshotEntry(
            index,
            tuple(self.history),
            type(self.last_yielded),
            tuple(self.journal.entries),
        )

    def replay(self, entry: SnapshotEntry) -> None:
        if not self.record.rewindable:
            raise ContinuationReuseFailure(
                f"frame {entry.index} was started from a generator object and cannot be "
                "rewound; pass a generator function to capture a replayable continuation"
            )
        self.journal.load(entry.journal)
        try:
            outcome = self.start()
            for resumption in entry.history:
                if isinstance(outcome, Returned):
                    break
                outcome = self.resume(resumption)
        except Exception as exc:
            self.close()
            raise ContinuationReuseFailure(
                f"replay of frame {entry.index} raised {type(exc).__name__}: {exc}"
            ) from exc
        if isinstance(outcome, Returned):
            raise ContinuationReuseFailure(
                f"replay of frame {entry.index} finished before reaching its suspension point"
            )
        if self.journal.diverged or not self.journal.exhausted:
            self.close()
            raise ContinuationReuseFailure(
                f"replay of frame {entry.index} diverged: its performed effects do not "
                "match the recorded ones"
            )
        if type(outcome.value) is not entry.primitive_type:
            self.close()
            raise ContinuationReuseFailure(
                f"replay of frame {entry.index} diverged: expected "
                f"{entry.primitive_type.__name__}, got {type(outcome.value).__name__}"
            )

    def close(self) -> None:
        generator, self.generator = self.generator, None
        if generator is None:
            return
        try:
            generator.close()
        except Exception:
            logger.warning(
                "Closing abandoned body of capture #%s failed",
                self.frame.frame_id,
                exc_info=True,
            )


__all__ = [
    "BodyGenerator",
    "Control",
    "FrameRecord",
    "FrameTable",
    "Journal",
    "Level",
    "Outcome",
    "Recorded",
    "Resumption",
    "Returned",
    "START",
    "Send",
    "Snapshot",
    "SnapshotEntry",
    "Start",
    "Throw",
    "Yielded",
]
