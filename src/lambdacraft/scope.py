"""Scope records and the capturing callables bound to them.

A :class:`Scope` is an environment record: a mapping of names to values plus
a reference to the enclosing record. Name lookup walks the ``parent`` chain,
so the cost of reaching a binding grows with the number of scopes between
the reader and the defining scope (:meth:`Scope.lookup_depth` reports it).

A :class:`CapturingCallable` is code bound to one scope. It may run any
number of times while that scope is open and is invalidated when the scope
closes; running it afterwards raises :class:`LambdaCraftLifecycleError`
instead of reading stale bindings::

    with Scope({"offset": 0.01}) as scope:
        step = scope.create(float, (float, float), lambda acc, v: acc + v + scope["offset"])
        total = reduce_array(numbers, step, 0.0)

Bodies mutate captured bindings by reference, either through the scope
record (``scope.set_existing("total", ...)``) or through ordinary Python
``nonlocal`` names of the enclosing function.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .errors import LambdaCraftLifecycleError, LambdaCraftSignatureError
from .values import check_declared, type_name, validate_arity

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Scope(MutableMapping[str, object]):
    def __init__(self, data: MutableMapping[str, object] | None = None, parent: "Scope | None" = None) -> None:
        if parent is not None:
            parent._require_open("nested scope")
        self.data: dict[str, object] = dict(data) if data is not None else {}
        self.parent = parent
        self.definitions: set[str] = set(self.data)
        self.closed: bool = False
        self._callables: list[CapturingCallable] = []
        self._children: list[Scope] = []
        if parent is not None:
            parent._children.append(self)

    def _require_open(self, action: str) -> None:
        if self.closed:
            raise LambdaCraftLifecycleError(f"Cannot use a closed scope ({action})")

    def _find_scope(self, key: str) -> "Scope | None":
        if key in self.data:
            return self
        if self.parent is not None:
            return self.parent._find_scope(key)
        return None

    def __getitem__(self, key: str) -> object:
        self._require_open(f"read {key!r}")
        if key in self.data:
            return self.data[key]
        if self.parent is not None:
            return self.parent[key]
        raise KeyError(key)

    def __setitem__(self, key: str, value: object) -> None:
        """Bind ``key`` in this scope.

        Like Python assignment this never reaches an enclosing scope: a name
        owned by a parent is shadowed here. Use :meth:`set_existing` to
        update the binding where it is defined.
        """
        self._require_open(f"write {key!r}")
        self.data[key] = value
        self.definitions.add(key)

    def __delitem__(self, key: str) -> None:
        self._require_open(f"delete {key!r}")
        if key in self.data:
            del self.data[key]
            self.definitions.discard(key)
            return
        raise KeyError(key)

    def __iter__(self):
        seen: set[str] = set()
        current: Scope | None = self
        while current is not None:
            for key in current.data:
                if key not in seen:
                    seen.add(key)
                    yield key
            current = current.parent

    def __len__(self) -> int:
        return sum(1 for _ in self.__iter__())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self._find_scope(key) is not None

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Scope(depth={self.depth}, names={sorted(self.data)!r}, {state})"

    @property
    def depth(self) -> int:
        depth = 0
        current = self.parent
        while current is not None:
            depth += 1
            current = current.parent
        return depth

    def find_scope(self, key: str) -> "Scope | None":
        return self._find_scope(key)

    def lookup_depth(self, key: str) -> int:
        """Number of parent hops from this scope to the one defining ``key``."""
        hops = 0
        current: Scope | None = self
        while current is not None:
            if key in current.data:
                return hops
            hops += 1
            current = current.parent
        raise KeyError(key)

    def define(self, key: str, value: object) -> None:
        self._require_open(f"define {key!r}")
        if key in self.definitions:
            raise NameError(f"Duplicate definition for name {key!r} in the same scope")
        self.data[key] = value
        self.definitions.add(key)

    def set_existing(self, key: str, value: object) -> None:
        self._require_open(f"update {key!r}")
        scope = self._find_scope(key)
        if scope is None:
            raise NameError(f"Cannot update undefined name {key!r}")
        scope.data[key] = value

    def nested(self, data: MutableMapping[str, object] | None = None) -> "Scope":
        return Scope(data=data, parent=self)

    def create(self, returns: object, params: tuple[object, ...], body: Callable[..., Any]) -> "CapturingCallable":
        self._require_open("create callable")
        params = tuple(params)
        validate_arity(body, len(params), where="callable body")
        fn = CapturingCallable(returns=returns, params=params, body=body, scope=self)
        self._callables.append(fn)
        return fn

    def callable(self, returns: object, params: tuple[object, ...]) -> Callable[[Callable[..., Any]], "CapturingCallable"]:
        """Decorator form of :meth:`create`."""

        def bind(body: Callable[..., Any]) -> CapturingCallable:
            return self.create(returns, params, body)

        return bind

    @property
    def live_callables(self) -> int:
        return sum(1 for fn in self._callables if fn.alive)

    def close(self) -> None:
        if self.closed:
            raise LambdaCraftLifecycleError("Scope is already closed")
        for child in list(self._children):
            if not child.closed:
                child.close()
        invalidated = 0
        for fn in self._callables:
            if fn.alive:
                fn.invalidate()
                invalidated += 1
        self.closed = True
        self._callables.clear()
        self._children.clear()
        if self.parent is not None:
            self.parent._children = [child for child in self.parent._children if child is not self]
        logger.debug("closed scope at depth %d, invalidated %d callable(s)", self.depth, invalidated)

    def __enter__(self) -> "Scope":
        self._require_open("enter")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # An enclosing scope may already have closed this one.
        if not self.closed:
            self.close()


@dataclass(frozen=True)
class CallableInfo:
    returns: str
    params: tuple[str, ...]
    arity: int
    depth: int
    alive: bool


@dataclass(eq=False)
class CapturingCallable:
    """Code bound to the bindings of the scope that created it."""

    returns: object
    params: tuple[object, ...]
    body: Callable[..., Any]
    scope: Scope
    owner_thread: int = field(default_factory=threading.get_ident)
    _alive: bool = field(default=True, repr=False)

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def alive(self) -> bool:
        return self._alive and not self.scope.closed

    @property
    def info(self) -> CallableInfo:
        return CallableInfo(
            returns=type_name(self.returns),
            params=tuple(type_name(p) for p in self.params),
            arity=self.arity,
            depth=self.scope.depth,
            alive=self.alive,
        )

    def invalidate(self) -> None:
        self._alive = False

    def ensure_alive(self, where: str = "callable") -> None:
        if not self.alive:
            raise LambdaCraftLifecycleError(f"{where}: callable invoked after its creating scope closed")
        if threading.get_ident() != self.owner_thread:
            raise LambdaCraftLifecycleError(f"{where}: callable invoked from a thread that did not create it")

    def __call__(self, *args: object) -> Any:
        self.ensure_alive()
        if len(args) != self.arity:
            raise LambdaCraftSignatureError(
                message="wrong number of arguments",
                where="callable",
                expected_arity=self.arity,
                found_arity=len(args),
            )
        for index, (arg, declared) in enumerate(zip(args, self.params)):
            check_declared(arg, declared, where=f"argument {index}")
        result = self.body(*args)
        check_declared(result, self.returns, where="result")
        return result

    def __copy__(self):
        raise LambdaCraftLifecycleError("Capturing callables cannot be copied out of their scope")

    def __deepcopy__(self, memo):
        raise LambdaCraftLifecycleError("Capturing callables cannot be copied out of their scope")

    def __reduce_ex__(self, protocol):
        raise LambdaCraftLifecycleError("Capturing callables cannot be serialized")


def create_callable(scope: Scope, returns: object, params: tuple[object, ...], body: Callable[..., Any]) -> CapturingCallable:
    return scope.create(returns, params, body)


def as_traversal_callable(fn: object, arity: int, *, where: str) -> Callable[..., Any]:
    """Check a per-element callable before a combinator touches any element."""
    if isinstance(fn, CapturingCallable):
        fn.ensure_alive(where)
        if fn.arity != arity:
            raise LambdaCraftSignatureError(
                message="declared parameter list does not fit this combinator",
                where=where,
                expected_arity=arity,
                found_arity=fn.arity,
            )
        return fn
    validate_arity(fn, arity, where=where)
    return fn  # type: ignore[return-value]
