"""
reaffect - dynamically-scoped effect handlers for Python.

Code performs named effects; handlers installed by an enclosing ``capture``
decide what they mean. ``escape`` and ``abort`` leave the nearest capture
non-locally. The suspending engine in ``reaffect.coroutine`` runs generator
bodies and can hand out multi-shot continuations.

Example:
    >>> from reaffect import capture, perform
    >>> state = {"v": 1}
    >>> capture(
    ...     {"get": lambda: state["v"], "set": lambda x: state.update(v=x)},
    ...     lambda: [perform("get"), perform("set", 2), perform("get")],
    ... )
    [1, None, 2]
"""

from reaffect.capture import (
    Scope,
    abort,
    call,
    capture,
    escape,
    handle,
    on,
    perform,
    wrap,
)
from reaffect.config import EngineConfig
from reaffect.context import CaptureFrame, EffectContext, EscapeSignal, FrameStatus
from reaffect.effects import ABORTED, Effect, EffectBase
from reaffect.errors import (
    ContextMissing,
    ContinuationReuseFailure,
    ContinuationUnavailable,
    EffectError,
    EscapeOutsideCapture,
    HandlerTableSealed,
    StepLimitExceeded,
    UnhandledEffect,
)
from reaffect.handlers import HandlerEntry, HandlerTable
from reaffect.proxy import EffectProxy
from reaffect.stack import ContextStack, current_context, current_context_or_none

effects = EffectProxy(perform)

__all__ = [
    "ABORTED",
    "CaptureFrame",
    "ContextMissing",
    "ContextStack",
    "ContinuationReuseFailure",
    "ContinuationUnavailable",
    "Effect",
    "EffectBase",
    "EffectContext",
    "EffectError",
    "EffectProxy",
    "EngineConfig",
    "EscapeOutsideCapture",
    "EscapeSignal",
    "FrameStatus",
    "HandlerEntry",
    "HandlerTable",
    "HandlerTableSealed",
    "Scope",
    "StepLimitExceeded",
    "UnhandledEffect",
    "abort",
    "call",
    "capture",
    "current_context",
    "current_context_or_none",
    "effects",
    "escape",
    "handle",
    "on",
    "perform",
    "wrap",
]
