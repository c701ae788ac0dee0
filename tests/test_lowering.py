from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for lowering tests")
class LoweringTests(unittest.TestCase):
    def setUp(self) -> None:
        from lambdacraft import lowering_cache_stats

        lowering_cache_stats(reset=True)

    def test_lowered_reduce_matches_interpreted_order(self) -> None:
        import jax.numpy as jnp
        from lambdacraft import lowered_reduce, reduce_array

        values = jnp.asarray([1.0, 2.0, 3.0])
        step = lambda acc, v: acc * 2 + v
        self.assertAlmostEqual(float(lowered_reduce(values, step, 0.0)), 11.0, places=6)
        self.assertAlmostEqual(float(reduce_array(values, step, 0.0)), 11.0, places=6)

        total = lowered_reduce(jnp.arange(1, 6, dtype=jnp.float32), lambda acc, v: acc + v, 0.0)
        self.assertAlmostEqual(float(total), 15.0, places=6)

    def test_lowered_reduce_empty_and_prefix(self) -> None:
        import jax.numpy as jnp
        from lambdacraft import lowered_reduce

        init = 0.0
        self.assertIs(lowered_reduce(jnp.zeros(0), lambda acc, v: acc + v, init), init)
        prefix = lowered_reduce([1.0, 2.0, 3.0], lambda acc, v: acc + v, 0.0, length=2)
        self.assertAlmostEqual(float(prefix), 3.0, places=6)

    def test_lowered_map(self) -> None:
        import jax.numpy as jnp
        from lambdacraft import lowered_map

        out = lowered_map(jnp.asarray([1.0, 2.0, 3.0]), lambda v: v * v)
        self.assertEqual(out.tolist(), [1.0, 4.0, 9.0])

    def test_capturing_callable_lowering_and_lifecycle(self) -> None:
        import jax.numpy as jnp
        from lambdacraft import LambdaCraftLifecycleError, Scope, lowered_map, lowered_reduce

        values = jnp.asarray([1.0, 2.0, 3.0])
        with Scope({"scale": 2.0}) as scope:
            scaled = scope.create(object, (object, object), lambda acc, v: acc + v * scope["scale"])
            shift = scope.create(object, (object,), lambda v: v + scope["scale"])
            self.assertAlmostEqual(float(lowered_reduce(values, scaled, 0.0)), 12.0, places=6)
            self.assertEqual(lowered_map(values, shift).tolist(), [3.0, 4.0, 5.0])

        with self.assertRaises(LambdaCraftLifecycleError):
            lowered_reduce(values, scaled, 0.0)
        with self.assertRaises(LambdaCraftLifecycleError):
            lowered_map(values, shift)

    def test_capturing_callable_sees_rebound_values(self) -> None:
        import jax.numpy as jnp
        from lambdacraft import Scope, lowered_map, lowered_reduce, lowering_cache_stats, reduce_array

        values = jnp.asarray([1.0, 2.0, 3.0])
        with Scope({"scale": 2.0}) as scope:
            scaled = scope.create(object, (object, object), lambda acc, v: acc + v * scope["scale"])
            shift = scope.create(object, (object,), lambda v: v + scope["scale"])
            self.assertAlmostEqual(float(lowered_reduce(values, scaled, 0.0)), 12.0, places=6)
            self.assertEqual(lowered_map(values, shift).tolist(), [3.0, 4.0, 5.0])

            scope["scale"] = 10.0
            self.assertAlmostEqual(float(reduce_array(values, scaled, 0.0)), 60.0, places=6)
            self.assertAlmostEqual(float(lowered_reduce(values, scaled, 0.0)), 60.0, places=6)
            self.assertEqual(lowered_map(values, shift).tolist(), [11.0, 12.0, 13.0])

        stats = lowering_cache_stats()
        self.assertEqual(stats["retraces"], 4)
        self.assertEqual(stats["size"], 0)

    def test_declared_types_checked_against_traced_dtypes(self) -> None:
        import jax.numpy as jnp
        from lambdacraft import LambdaCraftTypeError, Scope, lowered_map, lowered_reduce, map_array

        ints = jnp.asarray([1, 2])
        with Scope() as scope:
            halve = scope.create(int, (int,), lambda v: v * 0.5)
            with self.assertRaises(LambdaCraftTypeError):
                map_array(ints, halve)
            with self.assertRaises(LambdaCraftTypeError):
                lowered_map(ints, halve)

            mixed = scope.create(int, (int, int), lambda acc, v: acc + v * 0.5)
            with self.assertRaises(LambdaCraftTypeError):
                lowered_reduce(ints, mixed, 0)

            bump = scope.create(float, (float,), lambda v: v + 1.0)
            with self.assertRaises(LambdaCraftTypeError):
                lowered_map(jnp.asarray([True, False]), bump)

            add = scope.create(int, (int, int), lambda acc, v: acc + v)
            self.assertEqual(int(lowered_reduce(ints, add, 0)), 3)
            widen = scope.create(float, (float,), lambda v: v * 0.5)
            self.assertEqual(lowered_map(ints, widen).tolist(), [0.5, 1.0])

    def test_kernel_cache_stats(self) -> None:
        import jax.numpy as jnp
        from lambdacraft import lowered_reduce, lowering_cache_stats

        def add(acc, v):
            return acc + v

        values = jnp.asarray([1.0, 2.0])
        lowered_reduce(values, add, 0.0)
        lowered_reduce(values, add, 1.0)
        stats = lowering_cache_stats()
        self.assertEqual(stats["misses"], 1)
        self.assertEqual(stats["hits"], 1)
        self.assertEqual(stats["size"], 1)
        self.assertAlmostEqual(float(stats["hit_rate"]), 0.5)

        lowering_cache_stats(reset=True)
        self.assertEqual(lowering_cache_stats()["size"], 0)

    def test_signature_checked_before_lowering(self) -> None:
        from lambdacraft import LambdaCraftSignatureError, lowered_map, lowered_reduce

        with self.assertRaises(LambdaCraftSignatureError):
            lowered_reduce([1.0], lambda v: v, 0.0)
        with self.assertRaises(LambdaCraftSignatureError):
            lowered_map([1.0], lambda a, b: a)


if __name__ == "__main__":
    unittest.main()
