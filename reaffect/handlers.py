"""
Handler entries and handler tables.

A handler is any callable. How it is called depends on its signature, so call
sites and handlers may disagree slightly on shape:

- a handler without positional parameters ignores the payload;
- a handler with positional parameters receives the effect key itself when the
  perform carries no payload;
- otherwise the payload is spread positionally.

A handler that declares a keyword-only ``block`` parameter (or ``**kwargs``)
receives the block attached to the perform, if any.

Example:
    >>> table = HandlerTable().on("get", lambda: 1).on("set", lambda x: x)
    >>> table.resolve("get").invoke("get", ())
    1
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from frozendict import frozendict

from reaffect.effects import category_keys, is_hashable_key
from reaffect.errors import HandlerTableSealed

Handler = Callable[..., Any]

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


@dataclass(frozen=True)
class HandlerEntry:
    func: Handler
    takes_positional: bool = field(init=False)
    takes_block: bool = field(init=False)

    def __post_init__(self) -> None:
        takes_positional, takes_block = _inspect_handler(self.func)
        object.__setattr__(self, "takes_positional", takes_positional)
        object.__setattr__(self, "takes_block", takes_block)

    def invoke(
        self,
        key: Any,
        args: tuple[Any, ...],
        block: Callable[..., Any] | None = None,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if block is not None and self.takes_block:
            kwargs["block"] = block
        if not self.takes_positional:
            return self.func(**kwargs)
        if not args:
            return self.func(key, **kwargs)
        return self.func(*args, **kwargs)


def _inspect_handler(func: Handler) -> tuple[bool, bool]:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True, False

    takes_positional = False
    takes_block = False
    for param in signature.parameters.values():
        if param.kind in _POSITIONAL or param.kind is inspect.Parameter.VAR_POSITIONAL:
            takes_positional = True
        elif param.kind is inspect.Parameter.KEYWORD_ONLY and param.name == "block":
            takes_block = True
        elif param.kind is inspect.Parameter.VAR_KEYWORD:
            takes_block = True
    return takes_positional, takes_block


def accepts_positional(func: Callable[..., Any]) -> bool:
    return _inspect_handler(func)[0]


def as_entry(handler: Handler | HandlerEntry) -> HandlerEntry:
    if isinstance(handler, HandlerEntry):
        return handler
    if not callable(handler):
        raise TypeError(f"Handler must be callable, got {type(handler).__name__}")
    return HandlerEntry(handler)


class HandlerTable:
    """Mapping from effect key (or category) to handler, plus one wildcard.

    Resolution inside one table is exact key, then category (the MRO of the
    key's type), then the wildcard.
    """

    def __init__(
        self,
        handlers: Mapping[Any, Handler] | None = None,
        wildcard: Handler | None = None,
    ) -> None:
        self._entries: dict[Any, HandlerEntry] | frozendict = {}
        self._wildcard: HandlerEntry | None = None
        self._sealed = False
        if handlers:
            self.register_all(handlers)
        if wildcard is not None:
            self.register_wildcard(wildcard)

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def wildcard(self) -> HandlerEntry | None:
        return self._wildcard

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        return is_hashable_key(key) and key in self._entries

    def keys(self) -> list[Any]:
        return list(self._entries)

    def register(self, key: Any, handler: Handler | HandlerEntry) -> HandlerTable:
        if self._sealed:
            raise HandlerTableSealed(key)
        self._entries[key] = as_entry(handler)
        return self

    def register_all(self, mapping: Mapping[Any, Handler | HandlerEntry]) -> HandlerTable:
        for key, handler in mapping.items():
            self.register(key, handler)
        return self

    def register_wildcard(self, handler: Handler | HandlerEntry) -> HandlerTable:
        if self._sealed:
            raise HandlerTableSealed("*")
        self._wildcard = as_entry(handler)
        return self

    def on(
        self,
        key: Any,
        handler: Handler | HandlerEntry | None = None,
    ) -> HandlerTable:
        """Chainable ``register``; a mapping registers all of its entries."""
        if handler is None:
            if not isinstance(key, Mapping):
                raise TypeError("on() needs a handler unless given a mapping")
            return self.register_all(key)
        return self.register(key, handler)

    def handle(self, handler: Handler | HandlerEntry) -> HandlerTable:
        return self.register_wildcard(handler)

    def resolve(self, key: Any) -> HandlerEntry | None:
        if is_hashable_key(key):
            entry = self._entries.get(key)
            if entry is not None:
                return entry
        for category in category_keys(key):
            entry = self._entries.get(category)
            if entry is not None:
                return entry
        return self._wildcard

    def copy(self) -> HandlerTable:
        clone = HandlerTable()
        clone._entries = dict(self._entries)
        clone._wildcard = self._wildcard
        return clone

    def seal(self) -> HandlerTable:
        if not self._sealed:
            self._entries = frozendict(self._entries)
            self._sealed = True
        return self

    def __repr__(self) -> str:
        wildcard = ", *" if self._wildcard is not None else ""
        keys = ", ".join(repr(k) for k in self._entries)
        return f"HandlerTable({keys}{wildcard})"


def as_table(handlers: Any) -> HandlerTable:
    """Build a fresh table from a handler set.

    Accepts ``None``, a ``HandlerTable`` (copied), a mapping, or a single
    callable installed as the wildcard.
    """
    if handlers is None:
        return HandlerTable()
    if isinstance(handlers, HandlerTable):
        return handlers.copy()
    if isinstance(handlers, Mapping):
        return HandlerTable(handlers)
    if callable(handlers):
        return HandlerTable(wildcard=handlers)
    raise TypeError(f"Cannot build a handler table from {type(handlers).__name__}")


__all__ = [
    "Handler",
    "HandlerEntry",
    "HandlerTable",
    "accepts_positional",
    "as_entry",
    "as_table",
]
