"""Sequence model, sentinel and signature validators for the traversal engine."""

from __future__ import annotations

import inspect
import numbers
import types
import typing
from collections.abc import Sized
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Final, Union

import jax
import jax.numpy as jnp

from .errors import LambdaCraftShapeError, LambdaCraftSignatureError, LambdaCraftTypeError

# Chains end on the sentinel; it plays the role of a null successor.
SENTINEL: Final = None


def is_sentinel(value: object) -> bool:
    return value is SENTINEL


class SequenceKind(str, Enum):
    SENTINEL = "sentinel"
    ARRAY = "array"
    JAX_ARRAY = "jax_array"
    ELEMENT = "element"


@dataclass(frozen=True)
class SequenceInfo:
    kind: SequenceKind
    length: int | None
    writable: bool


def is_jax_array(value: object) -> bool:
    return isinstance(value, jax.Array)


def as_jax_array(value: object):
    if isinstance(value, jnp.ndarray):
        return value
    return jnp.asarray(value)


def is_array_view(value: object) -> bool:
    if is_jax_array(value):
        return True
    if isinstance(value, (str, bytes)):
        return False
    return isinstance(value, Sized) and hasattr(value, "__getitem__")


def is_writable_array(value: object) -> bool:
    if is_jax_array(value):
        return False
    if isinstance(value, (str, bytes, tuple, range)):
        return False
    return hasattr(value, "__setitem__")


def kind_of(value: object) -> SequenceKind:
    if is_sentinel(value):
        return SequenceKind.SENTINEL
    if is_jax_array(value) and value.ndim > 0:
        return SequenceKind.JAX_ARRAY
    if not is_jax_array(value) and is_array_view(value):
        return SequenceKind.ARRAY
    return SequenceKind.ELEMENT


def sequence_info(value: object) -> SequenceInfo:
    kind = kind_of(value)
    length: int | None = None
    if kind is SequenceKind.ARRAY:
        length = len(value)  # type: ignore[arg-type]
    elif kind is SequenceKind.JAX_ARRAY:
        length = int(value.shape[0])  # type: ignore[attr-defined]
    return SequenceInfo(kind=kind, length=length, writable=is_writable_array(value))


def array_length(array: object, length: int | None, *, where: str) -> int:
    """Resolve the traversal length of an array view.

    ``length`` selects the prefix ``0..length-1``; it may not run past the
    end of the view.
    """
    if not is_array_view(array):
        raise LambdaCraftTypeError(f"{where}: expected an indexable array, got {type(array).__name__}")
    if is_jax_array(array):
        if array.ndim == 0:  # type: ignore[attr-defined]
            raise LambdaCraftShapeError(f"{where}: cannot traverse a rank-0 array")
        available = int(array.shape[0])  # type: ignore[attr-defined]
    else:
        available = len(array)  # type: ignore[arg-type]

    if length is None:
        return available
    if isinstance(length, bool) or not isinstance(length, numbers.Integral):
        raise LambdaCraftTypeError(f"{where}: length must be an integer, got {type(length).__name__}")
    length = int(length)
    if length < 0:
        raise LambdaCraftShapeError(f"{where}: length must be >= 0, got {length}")
    if length > available:
        raise LambdaCraftShapeError(f"{where}: length {length} exceeds array length {available}")
    return length


def _positional_bounds(fn: Callable[..., object]) -> tuple[int, float] | None:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return None

    required = 0
    maximum: float = 0
    for param in signature.parameters.values():
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            maximum += 1
            if param.default is param.empty:
                required += 1
        elif param.kind is param.VAR_POSITIONAL:
            maximum = float("inf")
        elif param.kind is param.KEYWORD_ONLY and param.default is param.empty:
            # Keyword-only parameters without defaults can never be bound
            # by a positional call.
            return (-1, -1)
    return required, maximum


def validate_arity(fn: object, arity: int, *, where: str) -> None:
    if not callable(fn):
        raise LambdaCraftSignatureError(
            message=f"expected a callable, got {type(fn).__name__}",
            where=where,
            expected_arity=arity,
        )
    bounds = _positional_bounds(fn)
    if bounds is None:
        return
    required, maximum = bounds
    if required < 0:
        raise LambdaCraftSignatureError(
            message="callable has required keyword-only parameters",
            where=where,
            expected_arity=arity,
        )
    if not required <= arity <= maximum:
        raise LambdaCraftSignatureError(
            message="callable cannot accept the positional arguments it will be given",
            where=where,
            expected_arity=arity,
            found_arity=required,
        )


_UNCONSTRAINED: Final[tuple[object, ...]] = (None, object, Any)
_SCALAR_KINDS: Final[dict[type, str]] = {bool: "b", int: "iu", float: "iuf", complex: "iufc"}


def _union_args(declared: object) -> tuple[object, ...] | None:
    origin = typing.get_origin(declared)
    if origin is Union or origin is types.UnionType:
        return typing.get_args(declared)
    return None


def matches_declared(value: object, declared: object) -> bool:
    """Runtime check of a value against a declared parameter/return type."""
    if any(declared is marker for marker in _UNCONSTRAINED):
        return True
    if declared is type(None):
        return value is None

    members = _union_args(declared)
    if members is not None:
        return any(matches_declared(value, member) for member in members)

    origin = typing.get_origin(declared)
    if origin is not None:
        declared = origin
    if not isinstance(declared, type):
        return True

    if isinstance(value, bool):
        return declared is bool or declared is object
    if isinstance(value, declared):
        return True
    # Numeric tower: ints are accepted where floats are declared, reals
    # where complex numbers are declared.
    if declared is float and isinstance(value, numbers.Integral):
        return True
    if declared is complex and isinstance(value, numbers.Real):
        return True
    # Rank-0 JAX arrays and numpy scalars match by dtype kind.
    dtype = getattr(value, "dtype", None)
    if dtype is not None and getattr(value, "ndim", None) == 0 and declared in _SCALAR_KINDS:
        return dtype.kind in _SCALAR_KINDS[declared]
    return False


def matches_declared_abstract(spec: object, declared: object) -> bool:
    """Check a traced value (shape and dtype only) against a declared type."""
    if not hasattr(spec, "dtype") or not hasattr(spec, "shape"):
        return matches_declared(spec, declared)
    if any(declared is marker for marker in _UNCONSTRAINED):
        return True

    members = _union_args(declared)
    if members is not None:
        return any(matches_declared_abstract(spec, member) for member in members)

    origin = typing.get_origin(declared)
    if origin is not None:
        declared = origin
    if not isinstance(declared, type):
        return True
    if declared is jax.Array:
        return True
    if tuple(spec.shape) == () and declared in _SCALAR_KINDS:  # type: ignore[attr-defined]
        return spec.dtype.kind in _SCALAR_KINDS[declared]  # type: ignore[attr-defined]
    return False


def is_unconstrained(declared: object) -> bool:
    return any(declared is marker for marker in _UNCONSTRAINED)


def type_name(declared: object) -> str:
    if isinstance(declared, type):
        return declared.__name__
    return str(declared)


def check_declared(value: object, declared: object, *, where: str) -> None:
    if not matches_declared(value, declared):
        raise LambdaCraftTypeError(
            f"{where} has type {type(value).__name__}, declared {type_name(declared)}"
        )


def check_declared_abstract(spec: object, declared: object, *, where: str) -> None:
    if matches_declared_abstract(spec, declared):
        return
    if hasattr(spec, "dtype") and hasattr(spec, "shape"):
        found = f"{spec.dtype}{list(spec.shape)}"  # type: ignore[attr-defined]
    else:
        found = type(spec).__name__
    raise LambdaCraftTypeError(f"{where} traces to {found}, declared {type_name(declared)}")
