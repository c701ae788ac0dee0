"""Fold and map over contiguous array views."""

from __future__ import annotations

from typing import Any, Callable, TypeVar

import jax.numpy as jnp

from .errors import LambdaCraftShapeError, LambdaCraftTypeError
from .scope import as_traversal_callable
from .values import SequenceKind, array_length, kind_of, sequence_info

A = TypeVar("A")


def reduce_array(array, reducer: Callable[[A, Any], A], init: A, *, length: int | None = None) -> A:
    """Fold ``array[0..length-1]`` left to right into an accumulator.

    ``reducer(acc, element)`` returns the next accumulator. With no
    elements the initial accumulator is returned unchanged.
    """
    fn = as_traversal_callable(reducer, 2, where="reduce_array reducer")
    count = array_length(array, length, where="reduce_array")

    acc = init
    for index in range(count):
        acc = fn(acc, array[index])
    return acc


def _jax_results(source, results: list[object]):
    if results:
        return jnp.asarray(results)
    return jnp.zeros((0,) + tuple(source.shape[1:]), dtype=source.dtype)


def map_array(source, transform: Callable[[Any], Any], destination=None, *, length: int | None = None):
    """Write ``destination[i] = transform(source[i])`` for increasing ``i``.

    ``destination`` may be ``source`` itself. In that case the transform for
    index ``i`` must not read ``source[j]`` for ``j < i``: those slots have
    already been overwritten. JAX arrays are immutable, so a JAX destination
    receives functional updates and the updated array is returned; reads of
    a JAX source always see the original values.

    Returns the destination.
    """
    fn = as_traversal_callable(transform, 1, where="map_array transform")
    count = array_length(source, length, where="map_array source")

    if destination is None:
        if kind_of(source) is SequenceKind.JAX_ARRAY:
            return _jax_results(source, [fn(source[index]) for index in range(count)])
        destination = [None] * count

    info = sequence_info(destination)
    if info.kind not in (SequenceKind.ARRAY, SequenceKind.JAX_ARRAY):
        raise LambdaCraftTypeError(
            f"map_array destination: expected an indexable array, got {type(destination).__name__}"
        )
    if info.length < count:  # type: ignore[operator]
        raise LambdaCraftShapeError(
            f"map_array destination holds {info.length} element(s), {count} required"
        )

    if info.kind is SequenceKind.JAX_ARRAY:
        out = destination
        for index in range(count):
            out = out.at[index].set(fn(source[index]))
        return out

    if not info.writable:
        raise LambdaCraftTypeError(
            f"map_array destination {type(destination).__name__} does not support item assignment"
        )
    for index in range(count):
        destination[index] = fn(source[index])
    return destination
