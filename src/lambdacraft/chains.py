"""Fold, for-each and map over singly-linked chains.

A chain is reached from ``head`` through a caller-supplied successor
callable and ends on :data:`SENTINEL`. The engine owns neither the chain nor
its elements.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any, Callable, TypeVar

from .config import TraversalPolicy, resolve_policy
from .errors import LambdaCraftCycleError, LambdaCraftDepthError, classify_runtime_exception
from .scope import as_traversal_callable
from .values import SENTINEL, is_sentinel

logger = logging.getLogger(__name__)

A = TypeVar("A")
E = TypeVar("E")


class _VisitLedger:
    """Counts visited elements and reports repeats by identity."""

    def __init__(self, policy: TraversalPolicy, *, where: str) -> None:
        self.policy = policy
        self.where = where
        self.count = 0
        # Elements are kept alive until the traversal ends so identities
        # cannot be recycled.
        self._seen: dict[int, object] = {}

    def visit(self, element: object) -> None:
        self.count += 1
        limit = self.policy.max_chain_length
        if limit and self.count > limit:
            raise LambdaCraftDepthError(f"{self.where}: chain is longer than max_chain_length={limit}")
        if not self.policy.cycle_check:
            return
        key = id(element)
        if key in self._seen:
            logger.debug("%s: element revisited after %d step(s)", self.where, self.count - 1)
            raise LambdaCraftCycleError(
                f"{self.where}: element revisited after {self.count - 1} step(s); chain is cyclic"
            )
        self._seen[key] = element


def reduce_chain(
    head: E | None,
    successor: Callable[[E], E | None],
    reducer: Callable[[A, E], A],
    init: A,
    *,
    policy: TraversalPolicy | None = None,
) -> A:
    """Fold a chain head to tail.

    For each element the reducer runs first, then the successor. The
    reducer should treat the element as read-only.
    """
    next_fn = as_traversal_callable(successor, 1, where="reduce_chain successor")
    reduce_fn = as_traversal_callable(reducer, 2, where="reduce_chain reducer")
    ledger = _VisitLedger(resolve_policy(policy), where="reduce_chain")

    acc = init
    current = head
    while not is_sentinel(current):
        ledger.visit(current)
        acc = reduce_fn(acc, current)
        current = next_fn(current)
    return acc


def for_each_chain(head: E | None, step: Callable[[E], E | None], *, policy: TraversalPolicy | None = None) -> None:
    """Run ``step`` on every element; ``step`` returns the successor.

    When ``step`` destroys the element it is given, it must read the
    successor first. :func:`drain_chain` does that ordering for you.
    """
    step_fn = as_traversal_callable(step, 1, where="for_each_chain step")
    ledger = _VisitLedger(resolve_policy(policy), where="for_each_chain")

    current = head
    while not is_sentinel(current):
        ledger.visit(current)
        current = step_fn(current)


def iter_chain(head: E | None, successor: Callable[[E], E | None], *, policy: TraversalPolicy | None = None) -> Iterator[E]:
    """Yield chain elements, advancing before each element is handed out.

    The successor of an element is computed before the element is yielded,
    so the consumer may release it.
    """
    next_fn = as_traversal_callable(successor, 1, where="iter_chain successor")
    ledger = _VisitLedger(resolve_policy(policy), where="iter_chain")

    def walk() -> Iterator[E]:
        current = head
        while not is_sentinel(current):
            ledger.visit(current)
            following = next_fn(current)
            yield current  # type: ignore[misc]
            current = following

    return walk()


def drain_chain(
    head: E | None,
    successor: Callable[[E], E | None],
    action: Callable[[E], Any],
    *,
    policy: TraversalPolicy | None = None,
) -> int:
    """Apply a possibly destructive ``action`` to every element.

    Returns the number of elements handed to ``action``.
    """
    action_fn = as_traversal_callable(action, 1, where="drain_chain action")
    count = 0
    for element in iter_chain(head, successor, policy=policy):
        action_fn(element)
        count += 1
    return count


def map_chain(
    head: E | None,
    successor: Callable[[E], E | None],
    transform: Callable[[E, Any], Any],
    *,
    policy: TraversalPolicy | None = None,
    recursive: bool = False,
):
    """Build a new chain from an existing one without modifying it.

    ``transform(element, built_successor)`` allocates the new element and
    must link ``built_successor`` into it; the last element receives
    :data:`SENTINEL`. Elements are transformed tail to head, after every
    successor has been read head to tail. A transform that drops
    ``built_successor`` truncates the result.

    The descent uses an explicit stack. ``recursive=True`` descends with
    Python recursion instead, bounded by ``policy.max_recursion_depth``.
    """
    next_fn = as_traversal_callable(successor, 1, where="map_chain successor")
    map_fn = as_traversal_callable(transform, 2, where="map_chain transform")
    resolved = resolve_policy(policy)
    ledger = _VisitLedger(resolved, where="map_chain")

    if recursive:
        return _map_chain_recursive(head, next_fn, map_fn, ledger, resolved.max_recursion_depth)

    pending: list[E] = []
    current = head
    while not is_sentinel(current):
        ledger.visit(current)
        pending.append(current)  # type: ignore[arg-type]
        current = next_fn(current)

    built: Any = SENTINEL
    while pending:
        built = map_fn(pending.pop(), built)
    return built


def _map_chain_recursive(head, next_fn, map_fn, ledger: _VisitLedger, max_depth: int):
    def descend(element, depth: int):
        if is_sentinel(element):
            return SENTINEL
        if depth >= max_depth:
            raise LambdaCraftDepthError(f"map_chain: recursion deeper than max_recursion_depth={max_depth}")
        ledger.visit(element)
        built = descend(next_fn(element), depth + 1)
        return map_fn(element, built)

    try:
        return descend(head, 0)
    except RecursionError as exc:
        raise classify_runtime_exception(
            exc, where=f"map_chain (max_recursion_depth={max_depth})"
        ) from exc
