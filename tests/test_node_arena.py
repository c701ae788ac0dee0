from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for node-arena tests")
class NodeArenaTests(unittest.TestCase):
    def test_allocation_and_release_counters(self) -> None:
        from lambdacraft import NodeArena

        arena = NodeArena()
        first = arena.allocate("a")
        second = arena.allocate("b", first)
        self.assertEqual(arena.allocated, 2)
        self.assertEqual(arena.live, 2)
        self.assertIs(second.next, first)

        arena.release(second)
        self.assertTrue(second.released)
        self.assertEqual(arena.released, 1)
        self.assertEqual(arena.leaked(), [first])

    def test_access_after_release_is_reported(self) -> None:
        from lambdacraft import LambdaCraftUseAfterReleaseError, NodeArena

        arena = NodeArena()
        node = arena.allocate(1)
        arena.release(node)

        with self.assertRaises(LambdaCraftUseAfterReleaseError):
            node.value
        with self.assertRaises(LambdaCraftUseAfterReleaseError):
            node.next
        with self.assertRaises(LambdaCraftUseAfterReleaseError):
            node.value = 2
        with self.assertRaises(LambdaCraftUseAfterReleaseError):
            node.next = None
        with self.assertRaises(LambdaCraftUseAfterReleaseError):
            arena.release(node)
        self.assertIn("released", repr(node))

    def test_release_requires_owning_arena(self) -> None:
        from lambdacraft import LambdaCraftLifecycleError, Node, NodeArena

        arena = NodeArena()
        other = NodeArena()
        node = other.allocate(1)
        with self.assertRaises(LambdaCraftLifecycleError):
            arena.release(node)
        with self.assertRaises(LambdaCraftLifecycleError):
            arena.release(Node(1))
        self.assertEqual(other.live, 1)

    def test_build_chain_keeps_order(self) -> None:
        from lambdacraft import NodeArena, build_chain, chain_values

        self.assertEqual(chain_values(build_chain([1, 2, 3])), [1, 2, 3])
        self.assertIsNone(build_chain([]))

        arena = NodeArena()
        head = build_chain(["x", "y"], arena)
        self.assertEqual(chain_values(head), ["x", "y"])
        self.assertEqual(arena.allocated, 2)


if __name__ == "__main__":
    unittest.main()
