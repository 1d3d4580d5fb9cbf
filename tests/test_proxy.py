from __future__ import annotations

import pytest

from reaffect import capture, effects, perform
from reaffect.proxy import EffectProxy


class TestEffectProxy:
    def test_attribute_call_is_perform(self):
        assert capture({"add": lambda a, b: a + b}, lambda: effects.add(1, 2)) == 3

    def test_call_with_explicit_key(self):
        assert capture({("point", 1): lambda: "p"}, lambda: effects(("point", 1))) == "p"

    def test_block_is_forwarded(self):
        result = capture(
            {"twice": lambda *, block: block() * 2},
            lambda: effects.twice(block=lambda: 21),
        )
        assert result == 42

    def test_custom_performer(self):
        calls = []
        proxy = EffectProxy(lambda key, *args, block=None: calls.append((key, args)))
        proxy.anything(1, 2)
        proxy("other")
        assert calls == [("anything", (1, 2)), ("other", ())]

    def test_dunder_lookup_is_not_an_effect(self):
        with pytest.raises(AttributeError):
            effects.__wrapped__

    def test_invoke_names_the_effect(self):
        assert effects.log.__name__ == "log"

    def test_context_effects(self):
        def body(ctx):
            return ctx.effects.answer()

        assert capture({"answer": lambda: 42}, body) == 42

    def test_proxy_matches_perform(self):
        handlers = {"echo": lambda x: x}
        assert capture(handlers, lambda: effects.echo(7)) == capture(handlers, lambda: perform("echo", 7))
