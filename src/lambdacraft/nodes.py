"""Reference chain elements and an instrumented node allocator."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .arrays import reduce_array
from .chains import drain_chain, reduce_chain
from .errors import LambdaCraftLifecycleError, LambdaCraftUseAfterReleaseError
from .values import SENTINEL


@dataclass(eq=False)
class Node:
    value: object
    next: "Node | None" = None


def next_of(node):
    """Default successor: follow the ``next`` link."""
    return node.next


class ArenaNode:
    """Chain element owned by a :class:`NodeArena`.

    Reading or writing ``value``/``next`` after release raises
    :class:`LambdaCraftUseAfterReleaseError`.
    """

    __slots__ = ("_value", "_next", "_released", "arena", "serial", "__weakref__")

    def __init__(self, arena: "NodeArena", serial: int, value: object, next: "ArenaNode | None") -> None:
        self.arena = arena
        self.serial = serial
        self._value = value
        self._next = next
        self._released = False

    def _check(self, action: str) -> None:
        if self._released:
            raise LambdaCraftUseAfterReleaseError(f"{action} of node #{self.serial} after release")

    @property
    def released(self) -> bool:
        return self._released

    @property
    def value(self) -> object:
        self._check("read of value")
        return self._value

    @value.setter
    def value(self, value: object) -> None:
        self._check("write of value")
        self._value = value

    @property
    def next(self) -> "ArenaNode | None":
        self._check("read of next")
        return self._next

    @next.setter
    def next(self, node: "ArenaNode | None") -> None:
        self._check("write of next")
        self._next = node

    def __repr__(self) -> str:
        if self._released:
            return f"ArenaNode(#{self.serial}, released)"
        return f"ArenaNode(#{self.serial}, value={self._value!r})"


class NodeArena:
    """Allocator that counts allocations and releases of chain nodes."""

    def __init__(self) -> None:
        self.allocated = 0
        self.released = 0
        self._live: dict[int, ArenaNode] = {}

    def allocate(self, value: object, next: ArenaNode | None = None) -> ArenaNode:
        node = ArenaNode(self, self.allocated, value, next)
        self.allocated += 1
        self._live[node.serial] = node
        return node

    def release(self, node: ArenaNode) -> None:
        if not isinstance(node, ArenaNode) or node.arena is not self:
            raise LambdaCraftLifecycleError("Cannot release a node owned by another allocator")
        if node.released:
            raise LambdaCraftUseAfterReleaseError(f"node #{node.serial} released twice")
        node._released = True
        node._value = None
        node._next = None
        del self._live[node.serial]
        self.released += 1

    @property
    def live(self) -> int:
        return len(self._live)

    def leaked(self) -> list[ArenaNode]:
        return list(self._live.values())


def build_chain(values: Iterable[object], arena: NodeArena | None = None):
    """Build a chain holding ``values`` in order and return its head."""
    items = list(values)
    items.reverse()
    if arena is None:
        return reduce_array(items, lambda head, value: Node(value, head), SENTINEL)
    return reduce_array(items, lambda head, value: arena.allocate(value, head), SENTINEL)


def chain_values(head, successor=next_of) -> list[object]:
    out: list[object] = []
    reduce_chain(head, successor, lambda acc, node: acc.append(node.value) or acc, out)
    return out


def release_chain(head, arena: NodeArena, successor=next_of) -> int:
    """Release every node of a chain; returns the number released."""
    return drain_chain(head, successor, arena.release)
