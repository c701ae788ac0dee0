"""JAX-lowered fold and map for pure per-element callables.

The lowered forms trace the callable and run it through ``lax.scan`` (fold)
or ``lax.map`` (map), both of which visit elements in order. Bodies are
traced, not re-run per element: mutation of captured bindings happens at
trace time only, so only pure bodies give meaningful results.

Kernels for plain functions are cached per function. A
:class:`CapturingCallable` reads its scope at trace time, so it is traced
again on every call and always sees the current bindings. Its declared
parameter and return types are checked against the traced shapes and
dtypes before the kernel runs.
"""

from __future__ import annotations

import logging
import weakref
from typing import Any, Callable

import jax
from jax import lax
import jax.numpy as jnp

from .config import LOWERING_CACHE_MAX
from .scope import CapturingCallable, as_traversal_callable
from .values import array_length, as_jax_array, check_declared_abstract, is_unconstrained

logger = logging.getLogger(__name__)

_LOWERED_KERNELS: dict[tuple[str, int], Callable[..., Any]] = {}
_LOWERED_KERNEL_REFS: dict[tuple[str, int], object] = {}
_LOWERING_STATS: dict[str, int] = {"hits": 0, "misses": 0, "evictions": 0, "retraces": 0}


def _drop_kernel(key: tuple[str, int]) -> None:
    _LOWERED_KERNELS.pop(key, None)
    _LOWERED_KERNEL_REFS.pop(key, None)


def _build_reduce_kernel(body: Callable[..., Any]) -> Callable[..., Any]:
    def step(acc, value):
        return body(acc, value), None

    def run(init, values):
        final, _ = lax.scan(step, init, values)
        return final

    return jax.jit(run)


def _build_map_kernel(body: Callable[..., Any]) -> Callable[..., Any]:
    def run(values):
        return lax.map(body, values)

    return jax.jit(run)


def _cached_kernel(kind: str, fn: object, builder: Callable[[Callable[..., Any]], Callable[..., Any]]):
    key = (kind, id(fn))
    cached = _LOWERED_KERNELS.get(key)
    if cached is not None:
        _LOWERING_STATS["hits"] += 1
        return cached

    _LOWERING_STATS["misses"] += 1
    logger.debug("lowering %s kernel for %r", kind, fn)
    kernel = builder(fn)  # type: ignore[arg-type]
    if len(_LOWERED_KERNELS) >= LOWERING_CACHE_MAX:
        oldest = next(iter(_LOWERED_KERNELS))
        _drop_kernel(oldest)
        _LOWERING_STATS["evictions"] += 1
    try:
        ref = weakref.ref(fn, lambda _ref, k=key: _drop_kernel(k))
    except TypeError:
        # Builtins cannot be weakly referenced and live for the process anyway.
        ref = None
    _LOWERED_KERNELS[key] = kernel
    _LOWERED_KERNEL_REFS[key] = ref
    return kernel


def _kernel_for(kind: str, fn: object, builder: Callable[[Callable[..., Any]], Callable[..., Any]]):
    if isinstance(fn, CapturingCallable):
        # Captured bindings are read while tracing; a cached trace would
        # keep their old values.
        _LOWERING_STATS["retraces"] += 1
        return builder(fn.body)
    return _cached_kernel(kind, fn, builder)


def _check_traced_signature(fn: object, arg_specs: tuple[object, ...], *, where: str) -> None:
    if not isinstance(fn, CapturingCallable):
        return
    if all(is_unconstrained(p) for p in fn.params) and is_unconstrained(fn.returns):
        return
    for index, (spec, declared) in enumerate(zip(arg_specs, fn.params)):
        check_declared_abstract(spec, declared, where=f"{where} argument {index}")
    result = jax.eval_shape(fn.body, *arg_specs)
    check_declared_abstract(result, fn.returns, where=f"{where} result")


def _element_spec(values) -> jax.ShapeDtypeStruct:
    return jax.ShapeDtypeStruct(tuple(values.shape[1:]), values.dtype)


def lowered_reduce(array, reducer, init, *, length: int | None = None):
    """Fold through ``lax.scan``; same visiting order as ``reduce_array``."""
    fn = as_traversal_callable(reducer, 2, where="lowered_reduce reducer")
    count = array_length(array, length, where="lowered_reduce")
    if count == 0:
        return init
    values = as_jax_array(array)[:count]
    start = jnp.asarray(init)
    _check_traced_signature(
        fn,
        (jax.ShapeDtypeStruct(start.shape, start.dtype), _element_spec(values)),
        where="lowered_reduce reducer",
    )
    kernel = _kernel_for("reduce", fn, _build_reduce_kernel)
    return kernel(start, values)


def lowered_map(source, transform, *, length: int | None = None):
    """Map through ``lax.map``; returns a new JAX array."""
    fn = as_traversal_callable(transform, 1, where="lowered_map transform")
    count = array_length(source, length, where="lowered_map")
    values = as_jax_array(source)[:count]
    _check_traced_signature(fn, (_element_spec(values),), where="lowered_map transform")
    kernel = _kernel_for("map", fn, _build_map_kernel)
    return kernel(values)


def lowering_cache_stats(*, reset: bool = False) -> dict[str, float | int]:
    hits = _LOWERING_STATS["hits"]
    misses = _LOWERING_STATS["misses"]
    total = hits + misses
    stats: dict[str, float | int] = {
        "hits": hits,
        "misses": misses,
        "evictions": _LOWERING_STATS["evictions"],
        "retraces": _LOWERING_STATS["retraces"],
        "size": len(_LOWERED_KERNELS),
        "max_size": LOWERING_CACHE_MAX,
        "hit_rate": float(hits / total) if total else 0.0,
    }
    if reset:
        _LOWERED_KERNELS.clear()
        _LOWERED_KERNEL_REFS.clear()
        for key in _LOWERING_STATS:
            _LOWERING_STATS[key] = 0
    return stats
