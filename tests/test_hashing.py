from __future__ import annotations

from pathlib import Path
import hashlib
import tempfile
import unittest

from robuild.core.hashing import add_hash, content_hash, has_hash, rename_with_hash, splice_hash


class ContentHashTests(unittest.TestCase):
    def test_digest_is_sha256_prefix(self) -> None:
        expected = hashlib.sha256(b"hello").hexdigest()[:8]
        self.assertEqual(content_hash("hello"), expected)
        self.assertEqual(content_hash(b"hello"), expected)
        self.assertEqual(len(content_hash("x", 12)), 12)

    def test_add_hash(self) -> None:
        digest = content_hash("code")
        self.assertEqual(add_hash("index.mjs", "code"), f"index-{digest}.mjs")
        self.assertEqual(add_hash("LICENSE", "code"), f"LICENSE-{digest}")
        self.assertEqual(add_hash("dir.v2/README", "code"), f"dir.v2/README-{digest}")

    def test_splice_hash_with_compound_suffix(self) -> None:
        self.assertEqual(splice_hash("index.d.mts", "abcd1234", suffix=".d.mts"), "index-abcd1234.d.mts")

    def test_has_hash(self) -> None:
        self.assertTrue(has_hash("index-abcd1234.mjs"))
        self.assertTrue(has_hash("index-abcd1234"))
        self.assertFalse(has_hash("index.mjs"))
        self.assertFalse(has_hash("index-xyz.mjs"))

    def test_hash_must_sit_before_the_final_extension(self) -> None:
        self.assertFalse(has_hash("vendor-deadbeef.min.js"))
        self.assertFalse(has_hash("chunk-deadbeef/index.mjs"))
        self.assertTrue(has_hash("vendor.min-deadbeef.js"))

    def test_hashed_names_are_recognized(self) -> None:
        for name in ("index.mjs", "cli", "utils/index.d.ts"):
            hashed = add_hash(name, "content")
            self.assertTrue(has_hash(hashed), hashed)
            self.assertEqual(add_hash(name, "content"), hashed)


class RenameWithHashTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_renames_file_map_and_declaration_with_one_digest(self) -> None:
        code = "export const a = 1;\n"
        (self.root / "index.mjs").write_text(code)
        (self.root / "index.mjs.map").write_text("{}")
        (self.root / "index.d.mts").write_text("export declare const a: number;\n")

        hashed = rename_with_hash(self.root / "index.mjs", code, declaration_extension=".d.mts", js_extension=".mjs")

        digest = content_hash(code)
        self.assertEqual(hashed.name, f"index-{digest}.mjs")
        self.assertTrue(hashed.is_file())
        self.assertTrue((self.root / f"index-{digest}.mjs.map").is_file())
        self.assertTrue((self.root / f"index-{digest}.d.mts").is_file())
        self.assertFalse((self.root / "index.mjs").exists())
        self.assertFalse((self.root / "index.d.mts").exists())

    def test_missing_siblings_are_ignored(self) -> None:
        (self.root / "cli.cjs").write_text("x")
        hashed = rename_with_hash(self.root / "cli.cjs", "x", declaration_extension=".d.cts")
        self.assertEqual(sorted(path.name for path in self.root.iterdir()), [hashed.name])


if __name__ == "__main__":
    unittest.main()
