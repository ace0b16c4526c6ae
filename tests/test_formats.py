from __future__ import annotations

from pathlib import Path
import unittest

from robuild.errors import ConfigurationError
from robuild.formats import (
    OutputFormat,
    Platform,
    apply_out_extensions,
    declaration_extension,
    format_extension,
    normalize_format,
    normalize_platform,
    plan_format,
)


class FormatExtensionTests(unittest.TestCase):
    def test_default_extensions(self) -> None:
        self.assertEqual(format_extension("esm", "node"), ".mjs")
        self.assertEqual(format_extension("cjs", "node"), ".cjs")
        self.assertEqual(format_extension("cjs", "browser"), ".js")
        self.assertEqual(format_extension("cjs", "neutral"), ".js")
        self.assertEqual(format_extension("iife", "browser"), ".js")
        self.assertEqual(format_extension("umd", "node"), ".js")

    def test_fixed_extensions(self) -> None:
        self.assertEqual(format_extension("esm", "browser", True), ".mjs")
        self.assertEqual(format_extension("cjs", "browser", True), ".cjs")
        self.assertEqual(format_extension("iife", "browser", True), ".mjs")
        self.assertEqual(format_extension("umd", "node", True), ".mjs")

    def test_declaration_extension_ignores_fixed_extension(self) -> None:
        self.assertEqual(declaration_extension("esm"), ".d.mts")
        self.assertEqual(declaration_extension("cjs"), ".d.cts")
        self.assertEqual(declaration_extension("iife"), ".d.ts")
        self.assertEqual(plan_format("cjs", "node", True).declaration_extension, ".d.cts")
        self.assertEqual(plan_format("umd", "browser", True).declaration_extension, ".d.ts")


class FormatNormalizationTests(unittest.TestCase):
    def test_aliases(self) -> None:
        self.assertIs(normalize_format("es"), OutputFormat.ESM)
        self.assertIs(normalize_format("module"), OutputFormat.ESM)
        self.assertIs(normalize_format("CommonJS"), OutputFormat.CJS)
        self.assertEqual(OutputFormat.ESM.module_format, "es")
        self.assertEqual(OutputFormat.CJS.module_format, "cjs")

    def test_unknown_format(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            normalize_format("amd")
        self.assertIn("amd", str(ctx.exception))

    def test_platform(self) -> None:
        self.assertIs(normalize_platform(None), Platform.NODE)
        self.assertIs(normalize_platform("Browser"), Platform.BROWSER)
        with self.assertRaises(ConfigurationError):
            normalize_platform("deno")


class PlanFormatTests(unittest.TestCase):
    def test_multi_format_on_node(self) -> None:
        esm = plan_format("esm", "node", False, True)
        cjs = plan_format("cjs", "node", False, True)

        self.assertEqual(esm.extension, ".mjs")
        self.assertIsNone(esm.subdir)
        self.assertEqual(cjs.extension, ".cjs")
        self.assertEqual(cjs.subdir, "cjs")

    def test_single_format_uses_output_root(self) -> None:
        plan = plan_format("cjs", "node", False, False)
        self.assertEqual(plan.extension, ".cjs")
        self.assertIsNone(plan.subdir)

    def test_global_scripts(self) -> None:
        self.assertEqual(plan_format("iife", "browser", False, False).subdir, "browser")
        self.assertEqual(plan_format("umd", "browser", False, True).subdir, "browser")
        self.assertEqual(plan_format("iife", "node", False, True).subdir, "iife")
        self.assertIsNone(plan_format("umd", "node", False, False).subdir)

    def test_patterns(self) -> None:
        plan = plan_format("esm")
        self.assertEqual(plan.entry_pattern, "[name].mjs")
        self.assertEqual(plan.chunk_pattern, "_chunks/[name]-[hash].mjs")
        self.assertEqual(plan.module_format, "es")
        self.assertTrue(plan.emits_declarations)
        self.assertFalse(plan_format("cjs").emits_declarations)

    def test_out_dir_includes_subdir(self) -> None:
        root = Path("/pkg/dist")
        self.assertEqual(plan_format("cjs", "node", False, True, out_dir=root).out_dir, root / "cjs")
        self.assertEqual(plan_format("esm", "node", False, True, out_dir=root).out_dir, root)

    def test_plan_is_pure(self) -> None:
        for fmt in ("esm", "cjs", "iife", "umd"):
            for platform in ("node", "browser", "neutral"):
                for fixed in (False, True):
                    for multi in (False, True):
                        first = plan_format(fmt, platform, fixed, multi)
                        second = plan_format(fmt, platform, fixed, multi)
                        self.assertEqual(first, second)
                        self.assertTrue(first.extension.startswith("."))

    def test_to_mapping(self) -> None:
        mapping = plan_format("cjs", "node", False, True, out_dir=Path("/pkg/dist")).to_mapping()
        self.assertEqual(mapping["format"], "cjs")
        self.assertEqual(mapping["subdir"], "cjs")
        self.assertEqual(mapping["out_dir"], str(Path("/pkg/dist/cjs")))


class OutExtensionsTests(unittest.TestCase):
    def test_defaults_without_overrides(self) -> None:
        self.assertEqual(apply_out_extensions("esm"), (".mjs", ".d.mts"))
        self.assertEqual(apply_out_extensions("cjs", platform="browser"), (".js", ".d.cts"))

    def test_callable_receives_format_name(self) -> None:
        seen = []

        def extensions(fmt: str):
            seen.append(fmt)
            return {"js": "js", "dts": "d.ts"} if fmt == "esm" else None

        self.assertEqual(apply_out_extensions("es", extensions), (".js", ".d.ts"))
        self.assertEqual(apply_out_extensions("cjs", extensions), (".cjs", ".d.cts"))
        self.assertEqual(seen, ["esm", "cjs"])

    def test_mapping_by_format_with_partial_override(self) -> None:
        overrides = {"module": {"js": ".esm.js"}}
        self.assertEqual(apply_out_extensions("esm", overrides), (".esm.js", ".d.mts"))
        self.assertEqual(apply_out_extensions("umd", overrides), (".js", ".d.ts"))

    def test_plan_uses_overrides_for_patterns(self) -> None:
        plan = plan_format("cjs", "node", False, True, out_dir=Path("/pkg/dist"), out_extensions={"cjs": {"js": "cjs.js"}})
        self.assertEqual(plan.extension, ".cjs.js")
        self.assertEqual(plan.entry_pattern, "[name].cjs.js")
        self.assertEqual(plan.chunk_pattern, "_chunks/[name]-[hash].cjs.js")
        self.assertEqual(plan.subdir, "cjs")

    def test_invalid_override(self) -> None:
        with self.assertRaises(ConfigurationError):
            apply_out_extensions("esm", lambda fmt: ".js")


if __name__ == "__main__":
    unittest.main()
