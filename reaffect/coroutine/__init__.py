"""Suspending strategy: generator bodies, a driver loop and multi-shot continuations.

Bodies yield control primitives instead of calling the engine directly:

    from reaffect import coroutine as co

    def main():
        name = yield co.perform("input")
        yield co.effects.output(f"Hi, {name}!")
        return name

    co.capture({"input": lambda: "Ada", "output": print}, main)

Nested scopes yielded with ``with_handlers`` run inside the same driver, so a
continuation captured inside them rebuilds every level up to the escape target.
"""

from reaffect.coroutine.continuation import Continuation
from reaffect.coroutine.controller import ContinuationController, capture
from reaffect.coroutine.primitives import (
    ControlPrimitive,
    Escape,
    Perform,
    WithHandlers,
    abort,
    escape,
    perform,
    with_handlers,
)
from reaffect.proxy import EffectProxy

effects = EffectProxy(perform)

__all__ = [
    "Continuation",
    "ContinuationController",
    "ControlPrimitive",
    "Escape",
    "Perform",
    "WithHandlers",
    "abort",
    "capture",
    "effects",
    "escape",
    "perform",
    "with_handlers",
]
