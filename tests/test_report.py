from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from fakes import FakeMinifier, make_package
from robuild.report import OutputRecord, analyze_dirs, dist_size, format_bytes, render_report


class FormatBytesTests(unittest.TestCase):
    def test_units(self) -> None:
        self.assertEqual(format_bytes(0), "0 B")
        self.assertEqual(format_bytes(999), "999 B")
        self.assertEqual(format_bytes(1000), "1 kB")
        self.assertEqual(format_bytes(1500), "1.5 kB")
        self.assertEqual(format_bytes(1_250_000), "1.25 MB")


class DistSizeTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    async def test_without_minifier(self) -> None:
        path = self.root / "index.mjs"
        path.write_text("export const a = 1;\n")
        info = await dist_size(path)
        self.assertEqual(info.size, 20)
        self.assertEqual(info.min_size, 20)
        self.assertGreater(info.min_gzip_size, 0)

    async def test_with_minifier(self) -> None:
        path = self.root / "index.mjs"
        path.write_text("export const a = 1;\n\n    export const b = 2;\n")
        minifier = FakeMinifier()
        info = await dist_size(path, minifier=minifier)
        self.assertLess(info.min_size, info.size)
        self.assertEqual(minifier.calls, [path])

    def test_analyze_dirs_counts_nested_dirs_once(self) -> None:
        make_package(self.root, {"dist/a.mjs": "12345", "dist/cjs/a.cjs": "123", "other/b.js": "1"})
        size, files = analyze_dirs([self.root / "dist", self.root / "dist" / "cjs", self.root / "other", self.root / "missing"])
        self.assertEqual((size, files), (9, 3))


class RenderReportTests(unittest.TestCase):
    def test_report_lines(self) -> None:
        root = Path("/pkg")
        records = [
            OutputRecord(
                format="esm",
                file_name="index.mjs",
                path=root / "dist" / "index.mjs",
                exports=["value", "default"],
                dependencies=["[platform]", "lodash"],
                size=1500,
                min_size=900,
                min_gzip_size=400,
            ),
            OutputRecord(format="cjs", file_name="index.cjs", path=root / "dist" / "cjs" / "index.cjs", exports=["default"]),
        ]
        text = render_report(records, root=root)

        self.assertEqual(
            text,
            "[bundle] ./dist/index.mjs\n"
            "  Size: 1.5 kB, 900 B minified, 400 B min+gzipped\n"
            "  Exports: value, default\n"
            "  Dependencies: [platform], lodash\n"
            "\n"
            "[bundle] ./dist/cjs/index.cjs\n"
            "  Size: 0 B, 0 B minified, 0 B min+gzipped",
        )


if __name__ == "__main__":
    unittest.main()
