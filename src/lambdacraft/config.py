"""Traversal limits, read from ``LAMBDACRAFT_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Final


def _env_flag_disabled(name: str) -> bool:
    return os.environ.get(name, "0") == "1"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return int(raw)


_CYCLE_CHECK: Final[bool] = not _env_flag_disabled("LAMBDACRAFT_DISABLE_CYCLE_CHECK")
_MAX_CHAIN_LENGTH: Final[int] = max(0, _env_int("LAMBDACRAFT_MAX_CHAIN_LENGTH", 0))
_MAX_RECURSION_DEPTH: Final[int] = max(1, _env_int("LAMBDACRAFT_MAX_RECURSION_DEPTH", 512))
LOWERING_CACHE_MAX: Final[int] = max(1, _env_int("LAMBDACRAFT_LOWERING_CACHE_MAX", 256))


@dataclass(frozen=True)
class TraversalPolicy:
    """Explicit limits for chain combinators.

    - `cycle_check`: report a repeated element instead of looping forever.
    - `max_chain_length`: `0` means unbounded.
    - `max_recursion_depth`: bound for recursive `map_chain` descent.
    """

    cycle_check: bool = True
    max_chain_length: int = 0
    max_recursion_depth: int = 512

    def __post_init__(self) -> None:
        if self.max_chain_length < 0:
            raise ValueError("max_chain_length must be >= 0")
        if self.max_recursion_depth < 1:
            raise ValueError("max_recursion_depth must be >= 1")

    @classmethod
    def from_env(cls) -> "TraversalPolicy":
        return cls(
            cycle_check=_CYCLE_CHECK,
            max_chain_length=_MAX_CHAIN_LENGTH,
            max_recursion_depth=_MAX_RECURSION_DEPTH,
        )

    def with_limits(self, **changes: object) -> "TraversalPolicy":
        return replace(self, **changes)


_DEFAULT_POLICY: Final[TraversalPolicy] = TraversalPolicy.from_env()


def default_policy() -> TraversalPolicy:
    return _DEFAULT_POLICY


def resolve_policy(policy: TraversalPolicy | None) -> TraversalPolicy:
    return _DEFAULT_POLICY if policy is None else policy
