"""
Attribute-call sugar over ``perform``.

``effects.log("hi")`` is ``perform("log", "hi")``. The proxy only translates
the call shape; it does not intercept anything else.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

Performer = Callable[..., Any]


class EffectProxy:
    __slots__ = ("_performer",)

    def __init__(self, performer: Performer) -> None:
        self._performer = performer

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("__") and name.endswith("__"):
            raise AttributeError(name)
        performer = self._performer

        def invoke(*args: Any, block: Callable[..., Any] | None = None) -> Any:
            return performer(name, *args, block=block)

        invoke.__name__ = name
        invoke.__qualname__ = f"EffectProxy.{name}"
        return invoke

    def __call__(self, key: Any, *args: Any, block: Callable[..., Any] | None = None) -> Any:
        return self._performer(key, *args, block=block)

    def __repr__(self) -> str:
        target = getattr(self._performer, "__qualname__", type(self._performer).__name__)
        return f"EffectProxy({target})"


__all__ = ["EffectProxy"]
