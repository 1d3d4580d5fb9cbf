"""
Shared fixtures.

Every test must leave the context stack exactly as it found it: empty.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from reaffect.stack import ContextStack


@pytest.fixture(autouse=True)
def _context_stack_is_restored() -> Iterator[None]:
    assert ContextStack.top() is None
    yield
    assert ContextStack.top() is None, "a capture scope leaked onto the context stack"
