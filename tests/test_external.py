from __future__ import annotations

import io
import re
import unittest

from robuild.core.console import Console
from robuild.external import (
    ExternalRule,
    ExternalRuleSet,
    RuleKind,
    RuleTag,
    apply_no_external,
    build_external_deps,
    coerce_rule_value,
    dependency_names,
    resolve_external_config,
    subpath_pattern,
)


MANIFEST = {
    "name": "demo",
    "dependencies": {"@scope/name": "^1.0.0", "lodash": "^4.17.0"},
    "peerDependencies": {"react": "*"},
}


class SeedRuleTests(unittest.TestCase):
    def test_subpath_pattern_for_scoped_package(self) -> None:
        pattern = subpath_pattern("@scope/name")
        self.assertIsNotNone(pattern.search("@scope/name/sub"))
        self.assertIsNone(pattern.search("@scope/nameX"))
        self.assertIsNone(pattern.search("@scope/name"))

    def test_dependency_names_keep_manifest_order(self) -> None:
        self.assertEqual(dependency_names(MANIFEST), ["@scope/name", "lodash", "react"])
        self.assertEqual(dependency_names({}), [])

    def test_builtins_and_dependencies_are_external(self) -> None:
        rules = resolve_external_config(MANIFEST)
        self.assertIsInstance(rules, ExternalRuleSet)
        for module_id in ("fs", "node:fs", "fs/promises", "lodash", "lodash/fp", "react", "@scope/name/deep"):
            self.assertTrue(rules(module_id), module_id)
        for module_id in ("./local", "left-pad", "@scope/nameX"):
            self.assertFalse(rules(module_id), module_id)


class NoExternalTests(unittest.TestCase):
    def test_exact_string_removes_exact_rule_and_its_pattern(self) -> None:
        rules = build_external_deps(MANIFEST)
        kept = apply_no_external(rules, ["lodash"], MANIFEST)

        removed = [rule for rule in rules if rule not in kept]
        self.assertEqual(len(removed), 2)
        self.assertEqual({rule.kind for rule in removed}, {RuleKind.EXACT, RuleKind.PATTERN})
        self.assertEqual({rule.describe() for rule in removed}, {"lodash", "/^lodash//"})

    def test_pattern_removes_matching_exact_rules_only(self) -> None:
        rules = build_external_deps(MANIFEST)
        kept = apply_no_external(rules, [re.compile("^lod")], MANIFEST)

        descriptions = [rule.describe() for rule in kept]
        self.assertNotIn("lodash", descriptions)
        self.assertIn("/^lodash//", descriptions)

    def test_identical_pattern_is_removed(self) -> None:
        rules = build_external_deps(MANIFEST)
        kept = apply_no_external(rules, [subpath_pattern("react")], MANIFEST)

        descriptions = [rule.describe() for rule in kept]
        self.assertNotIn("/^react//", descriptions)
        self.assertIn("react", descriptions)

    def test_list_elements_become_inlined_rules(self) -> None:
        rules = resolve_external_config(MANIFEST, no_external=["lodash"])
        assert isinstance(rules, ExternalRuleSet)
        inlined = rules.inlined_rules()
        self.assertEqual(inlined, [ExternalRule(RuleKind.EXACT, "lodash", RuleTag.INLINED)])
        self.assertFalse(rules("lodash"))
        self.assertFalse(rules("lodash/fp"))
        self.assertTrue(rules("react"))

    def test_predicate_is_evaluated_per_dependency(self) -> None:
        seen = []

        def inline_react(name: str) -> bool:
            seen.append(name)
            return name == "react"

        rules = resolve_external_config(MANIFEST, no_external=inline_react)
        self.assertEqual(seen, ["@scope/name", "lodash", "react"])
        self.assertFalse(rules("react"))
        self.assertFalse(rules("react/jsx-runtime"))
        self.assertTrue(rules("lodash"))

    def test_single_argument_predicate_overrides_wildcard(self) -> None:
        rules = resolve_external_config({}, external=["*"], no_external=lambda name: name == "pkg-a")
        self.assertFalse(rules("pkg-a"))
        self.assertFalse(rules("pkg-a", "/src/index.ts"))
        self.assertTrue(rules("pkg-b"))

    def test_predicate_errors_are_logged_while_seeding(self) -> None:
        stream = io.StringIO()
        console = Console("verbose", stream=stream, error_stream=io.StringIO())

        def explode(name: str) -> bool:
            raise RuntimeError("bad predicate")

        rules = resolve_external_config(MANIFEST, no_external=explode, console=console)
        self.assertIn("[DEBUG]", stream.getvalue())
        self.assertIn("bad predicate", stream.getvalue())
        assert isinstance(rules, ExternalRuleSet)
        self.assertEqual(len(rules.external_rules()), len(build_external_deps(MANIFEST)))

    def test_predicate_errors_propagate_during_classification(self) -> None:
        def explode(name: str) -> bool:
            raise RuntimeError("bad predicate")

        rules = resolve_external_config(MANIFEST, no_external=explode, console=Console("silent"))
        with self.assertRaises(RuntimeError):
            rules("lodash")


class CustomExternalTests(unittest.TestCase):
    def test_wildcard_with_inlined_package(self) -> None:
        rules = resolve_external_config({}, external=["*"], no_external=["pkg-a"])
        self.assertFalse(rules("pkg-a"))
        self.assertTrue(rules("pkg-b"))
        self.assertTrue(rules("@org/tool"))

    def test_glob_rule(self) -> None:
        rules = resolve_external_config({}, external=["@internal/*"])
        self.assertTrue(rules("@internal/a"))
        self.assertFalse(rules("@other/a"))

    def test_external_list_is_appended_verbatim(self) -> None:
        rules = resolve_external_config({}, external=["extra", "extra", re.compile("^virtual:")])
        assert isinstance(rules, ExternalRuleSet)
        seeded = len(build_external_deps({}))
        self.assertEqual(len(rules.external_rules()) - seeded, 3)
        self.assertTrue(rules("virtual:entry"))

    def test_external_predicate_is_returned_unchanged(self) -> None:
        def everything(module_id: str, importer: str | None = None) -> bool:
            return True

        self.assertIs(resolve_external_config(MANIFEST, external=everything), everything)

    def test_to_mapping(self) -> None:
        rules = resolve_external_config({}, external=["extra"], no_external=["pkg-a"])
        assert isinstance(rules, ExternalRuleSet)
        mapping = rules.to_mapping()
        self.assertEqual(mapping["inlined"], ["pkg-a"])
        self.assertEqual(mapping["external"][-1], "extra")


class RuleValueTests(unittest.TestCase):
    def test_regex_literal_strings_become_patterns(self) -> None:
        value = coerce_rule_value("/^foo/i")
        self.assertIsInstance(value, re.Pattern)
        self.assertEqual(value.pattern, "^foo")
        self.assertTrue(value.flags & re.IGNORECASE)

    def test_plain_strings_are_kept(self) -> None:
        self.assertEqual(coerce_rule_value("@scope/pkg"), "@scope/pkg")

    def test_invalid_rule_type(self) -> None:
        with self.assertRaises(TypeError):
            ExternalRule.from_value(42)


if __name__ == "__main__":
    unittest.main()
