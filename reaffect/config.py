"""
Runtime settings for the reaffect engines.

Settings come from the environment:

- ``REAFFECT_DEBUG``: ``1``/``true``/``yes`` enables the driver step trace.
- ``REAFFECT_MAX_STEPS``: optional upper bound on driver steps per run.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

_TRUTHY = ("1", "true", "yes")


@dataclass(frozen=True)
class EngineConfig:
    debug: bool = False
    max_steps: int | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        env = os.environ if environ is None else environ
        debug = env.get("REAFFECT_DEBUG", "").lower() in _TRUTHY
        raw_steps = env.get("REAFFECT_MAX_STEPS", "").strip()
        if not raw_steps:
            return cls(debug=debug)
        try:
            max_steps = int(raw_steps)
        except ValueError as exc:
            raise ValueError(
                f"REAFFECT_MAX_STEPS must be an integer, got {raw_steps!r}"
            ) from exc
        if max_steps <= 0:
            raise ValueError(f"REAFFECT_MAX_STEPS must be positive, got {max_steps}")
        return cls(debug=debug, max_steps=max_steps)


DEFAULT_CONFIG = EngineConfig()


__all__ = ["DEFAULT_CONFIG", "EngineConfig"]
