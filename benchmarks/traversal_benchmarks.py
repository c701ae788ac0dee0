"""Traversal benchmarks: scope lookup cost by nesting depth, fold and chain map paths."""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable

import jax.numpy as jnp

from _bench_utils import host_metadata, percentile, sample_ms
from lambdacraft import Node, Scope, build_chain, lowered_reduce, map_chain, next_of, reduce_array


@dataclass(frozen=True)
class BenchRow:
    name: str
    size: int
    p50_ms: float
    p90_ms: float


def _row(name: str, size: int, fn: Callable[[], object], *, repeats: int, samples: int) -> BenchRow:
    rows = sample_ms(fn, repeats=repeats, warmup=2, samples=samples)
    return BenchRow(name=name, size=size, p50_ms=percentile(rows, 0.5), p90_ms=percentile(rows, 0.9))


def bench_lookup_depth(depths: list[int], *, repeats: int, samples: int) -> list[BenchRow]:
    out: list[BenchRow] = []
    for depth in depths:
        with Scope({"target": 1}) as root:
            current = root
            for level in range(depth):
                current = current.nested({f"level{level}": level})
            leaf = current
            out.append(_row("scope_lookup", depth, lambda: leaf["target"], repeats=repeats, samples=samples))
    return out


def bench_reduce(sizes: list[int], *, repeats: int, samples: int) -> list[BenchRow]:
    out: list[BenchRow] = []
    for size in sizes:
        values = jnp.arange(size, dtype=jnp.float32)
        as_list = [float(v) for v in range(size)]
        add = lambda acc, v: acc + v
        out.append(_row("reduce_array_list", size, lambda: reduce_array(as_list, add, 0.0), repeats=repeats, samples=samples))
        out.append(_row("lowered_reduce", size, lambda: lowered_reduce(values, add, 0.0), repeats=repeats, samples=samples))
    return out


def bench_map_chain(sizes: list[int], *, repeats: int, samples: int) -> list[BenchRow]:
    out: list[BenchRow] = []
    square = lambda node, built: Node(node.value * node.value, built)
    for size in sizes:
        head = build_chain(range(size))
        out.append(_row("map_chain_stack", size, lambda: map_chain(head, next_of, square), repeats=repeats, samples=samples))
        if size < 500:
            out.append(
                _row(
                    "map_chain_recursive",
                    size,
                    lambda: map_chain(head, next_of, square, recursive=True),
                    repeats=repeats,
                    samples=samples,
                )
            )
    return out


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--repeats", type=int, default=20)
    parser.add_argument("--samples", type=int, default=5)
    parser.add_argument("--json-out", default="benchmarks/output/traversal.json")
    args = parser.parse_args()

    rows: list[BenchRow] = []
    rows.extend(bench_lookup_depth([0, 1, 4, 16, 64], repeats=args.repeats * 50, samples=args.samples))
    rows.extend(bench_reduce([16, 256, 4096], repeats=args.repeats, samples=args.samples))
    rows.extend(bench_map_chain([16, 256, 4096], repeats=args.repeats, samples=args.samples))

    print(f"{'benchmark':<22} {'size':>6} {'p50 ms':>10} {'p90 ms':>10}")
    for row in rows:
        print(f"{row.name:<22} {row.size:>6} {row.p50_ms:>10.4f} {row.p90_ms:>10.4f}")

    path = Path(args.json_out)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"host": host_metadata(), "rows": [asdict(r) for r in rows]}, indent=2), encoding="utf-8")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
