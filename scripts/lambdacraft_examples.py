"""Run the lambdacraft example programs: fold/map over arrays and linked chains."""

from __future__ import annotations

import argparse
import sys

from lambdacraft import (
    Node,
    NodeArena,
    Scope,
    chain_values,
    for_each_chain,
    map_array,
    map_chain,
    next_of,
    reduce_array,
    reduce_chain,
)

NUMBERS = [1.1, 2.1, 3.1, 4.1, 5.1, 6.1, 7.1, 8.1, 9.1]


def fold_array_example() -> None:
    with Scope({"nested_value": 0.01}) as scope:
        step = scope.create(float, (float, float), lambda acc, v: acc + v + scope["nested_value"])
        print(f"{reduce_array(NUMBERS, step, 0.0):f}")


def fold_struct_example(argv: list[str]) -> None:
    arena = NodeArena()
    with Scope() as scope:
        # Prepending each argument yields the chain in reverse order.
        push = scope.create(object, (object, str), lambda head, item: arena.allocate(item, head))
        head = reduce_array(argv, push, None)

        total_length = reduce_chain(
            head,
            scope.create(object, (object,), next_of),
            scope.create(int, (int, object), lambda acc, node: acc + len(node.value)),
            0,
        )
        print(f"Total length: {total_length}")

        def release(node):
            following = node.next
            arena.release(node)
            return following

        for_each_chain(head, scope.create(object, (object,), release))
    if arena.live:
        raise RuntimeError(f"{arena.live} node(s) leaked")


def map_array_example() -> None:
    with Scope({"nested_value": 0.5}) as scope:
        mapped = map_array(NUMBERS, scope.create(float, (float,), lambda v: v + scope["nested_value"]), [0.0] * len(NUMBERS))
    for source, value in zip(NUMBERS, mapped, strict=True):
        print(f"Source: {source:f} -> Mapped: {value:f}")


def _render(values: list[object]) -> str:
    return "".join(f"{v} -> " for v in values) + "NULL"


def map_struct_example() -> None:
    head = Node(1, Node(2, Node(3)))
    print("Original list:")
    print(_render(chain_values(head)))

    with Scope() as scope:
        square = scope.create(Node, (Node, Node | None), lambda node, built: Node(node.value * node.value, built))
        new_head = map_chain(head, next_of, square)

    print("\nMapped list (squared values):")
    print(_render(chain_values(new_head)))


EXAMPLES = ("fold-array", "fold-struct", "map-array", "map-struct")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("example", choices=EXAMPLES + ("all",), nargs="?", default="all")
    parser.add_argument("words", nargs="*", help="arguments folded into a chain by fold-struct")
    args = parser.parse_args(argv)

    selected = EXAMPLES if args.example == "all" else (args.example,)
    for name in selected:
        if len(selected) > 1:
            print(f"== {name}")
        if name == "fold-array":
            fold_array_example()
        elif name == "fold-struct":
            fold_struct_example([sys.argv[0], *args.words])
        elif name == "map-array":
            map_array_example()
        else:
            map_struct_example()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
