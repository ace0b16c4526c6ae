from __future__ import annotations

import unittest

from robuild.engine import Chunk
from robuild.graph import DependencyResolver


class DependencyResolverTests(unittest.TestCase):
    def test_follows_chunk_imports_transitively(self) -> None:
        chunks = [
            Chunk("a.mjs", is_entry=True, imports=["b.mjs", "lodash"]),
            Chunk("b.mjs", imports=["c.mjs", "fs"]),
            Chunk("c.mjs", imports=["node:path", "react"]),
        ]
        resolver = DependencyResolver(chunks)
        self.assertEqual(resolver.resolve(chunks[0]), ["[platform]", "lodash", "react"])

    def test_cycles_terminate(self) -> None:
        chunks = [
            Chunk("a.mjs", is_entry=True, imports=["b.mjs"]),
            Chunk("b.mjs", imports=["a.mjs", "zod"]),
        ]
        resolver = DependencyResolver(chunks)
        self.assertEqual(resolver.resolve(chunks[0]), ["zod"])

    def test_cycle_members_resolve_the_same_in_any_order(self) -> None:
        chunks = [
            Chunk("a.mjs", is_entry=True, imports=["b.mjs", "ext-a"]),
            Chunk("b.mjs", is_entry=True, imports=["a.mjs"]),
        ]
        for order in ((0, 1), (1, 0)):
            cache = {}
            resolver = DependencyResolver(chunks, cache=cache)
            results = {chunks[index].file_name: resolver.resolve(chunks[index]) for index in order}
            self.assertEqual(results, {"a.mjs": ["ext-a"], "b.mjs": ["ext-a"]}, order)

    def test_partial_cycle_walks_are_not_memoized(self) -> None:
        cache = {}
        chunks = [
            Chunk("a.mjs", is_entry=True, imports=["b.mjs", "ext-a"]),
            Chunk("b.mjs", imports=["a.mjs"]),
        ]
        DependencyResolver(chunks, cache=cache).resolve(chunks[0])
        self.assertEqual(cache, {("", "a.mjs"): ["ext-a"]})

    def test_results_are_memoized_per_scope(self) -> None:
        cache = {}
        first = [Chunk("index.mjs", is_entry=True, imports=["lodash"])]
        DependencyResolver(first, scope="esm:/dist", cache=cache).resolve(first[0])

        second = [Chunk("index.mjs", is_entry=True, imports=["react"])]
        self.assertEqual(
            DependencyResolver(second, scope="esm:/dist", cache=cache).resolve(second[0]),
            ["lodash"],
        )
        self.assertEqual(
            DependencyResolver(second, scope="cjs:/dist/cjs", cache=cache).resolve(second[0]),
            ["react"],
        )
        self.assertIn(("esm:/dist", "index.mjs"), cache)

    def test_entry_without_imports(self) -> None:
        chunk = Chunk("index.mjs", is_entry=True)
        self.assertEqual(DependencyResolver([chunk]).resolve(chunk), [])


if __name__ == "__main__":
    unittest.main()
