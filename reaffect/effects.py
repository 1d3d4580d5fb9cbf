"""
Effect descriptors and key helpers.

An effect key is any value. Plain values (strings, enum members, sentinel
objects, classes) are matched exactly. Instances are additionally matched by
category: the classes along their MRO, most-derived first.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass
from typing import Any


class _AbortedMarker:
    """Marker returned by ``capture`` when a scope is aborted without a value."""

    _instance: _AbortedMarker | None = None

    def __new__(cls) -> _AbortedMarker:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABORTED"


ABORTED = _AbortedMarker()


class EffectBase:
    """Optional base class for categorical effects.

    Registering a handler under a subclass routes every instance of it (and of
    its own subclasses) to that handler.
    """


@dataclass(frozen=True)
class Effect:
    key: Any
    args: tuple[Any, ...] = ()
    block: Callable[..., Any] | None = None

    def __repr__(self) -> str:
        parts = [repr(self.key), *(repr(a) for a in self.args)]
        if self.block is not None:
            parts.append("block=...")
        return f"Effect({', '.join(parts)})"


def is_hashable_key(key: Any) -> bool:
    return isinstance(key, Hashable)


def category_keys(key: Any) -> Iterator[type]:
    for cls in type(key).__mro__:
        if cls is object:
            return
        yield cls


__all__ = ["ABORTED", "Effect", "EffectBase", "category_keys", "is_hashable_key"]
