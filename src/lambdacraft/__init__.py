"""lambdacraft public API."""

from .arrays import map_array, reduce_array
from .chains import drain_chain, for_each_chain, iter_chain, map_chain, reduce_chain
from .config import TraversalPolicy, default_policy
from .errors import (
    LambdaCraftCycleError,
    LambdaCraftDepthError,
    LambdaCraftError,
    LambdaCraftLifecycleError,
    LambdaCraftRuntimeError,
    LambdaCraftShapeError,
    LambdaCraftSignatureError,
    LambdaCraftTypeError,
    LambdaCraftUseAfterReleaseError,
)
from .lowering import lowered_map, lowered_reduce, lowering_cache_stats
from .nodes import ArenaNode, Node, NodeArena, build_chain, chain_values, next_of, release_chain
from .scope import CallableInfo, CapturingCallable, Scope, create_callable
from .values import SENTINEL, is_sentinel

__all__ = [
    "Scope",
    "CapturingCallable",
    "CallableInfo",
    "create_callable",
    "reduce_array",
    "map_array",
    "reduce_chain",
    "for_each_chain",
    "iter_chain",
    "drain_chain",
    "map_chain",
    "SENTINEL",
    "is_sentinel",
    "Node",
    "ArenaNode",
    "NodeArena",
    "next_of",
    "build_chain",
    "chain_values",
    "release_chain",
    "TraversalPolicy",
    "default_policy",
    "lowered_reduce",
    "lowered_map",
    "lowering_cache_stats",
    "LambdaCraftError",
    "LambdaCraftRuntimeError",
    "LambdaCraftSignatureError",
    "LambdaCraftTypeError",
    "LambdaCraftShapeError",
    "LambdaCraftLifecycleError",
    "LambdaCraftCycleError",
    "LambdaCraftDepthError",
    "LambdaCraftUseAfterReleaseError",
]
