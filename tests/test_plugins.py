from __future__ import annotations

import functools
import unittest

from robuild.plugins import NormalizedPlugin, PluginKind, classify_plugin, normalize_plugin, normalize_plugins


class LoggerPlugin:
    name = "logger"

    def build_start(self) -> None:
        pass


class ClassifyPluginTests(unittest.TestCase):
    def test_robuild_markers(self) -> None:
        self.assertIs(classify_plugin({"meta": {"robuild": True}}), PluginKind.ROBUILD)
        self.assertIs(classify_plugin({"name": "x", "robuild_setup": print, "transform": print}), PluginKind.ROBUILD)

    def test_engine_plugin_needs_name_and_hook(self) -> None:
        self.assertIs(classify_plugin(LoggerPlugin()), PluginKind.ENGINE_NATIVE)
        self.assertIs(classify_plugin({"name": "svg", "load": print}), PluginKind.ENGINE_NATIVE)

    def test_vite_and_unplugin(self) -> None:
        self.assertIs(classify_plugin({"config": print}), PluginKind.VITE)
        self.assertIs(classify_plugin({"meta": {"vite": True}}), PluginKind.VITE)
        self.assertIs(classify_plugin({"unplugin": True}), PluginKind.UNPLUGIN)
        self.assertIs(classify_plugin({"meta": {"unplugin": True}}), PluginKind.UNPLUGIN)

    def test_fallback_is_engine(self) -> None:
        self.assertIs(classify_plugin({"name": "bare"}), PluginKind.ENGINE_NATIVE)


class NormalizePluginTests(unittest.TestCase):
    def test_factories_are_called(self) -> None:
        def factory() -> dict:
            return {"name": "made", "transform": print}

        normalized = normalize_plugin(factory)
        self.assertEqual(normalized, NormalizedPlugin(PluginKind.ENGINE_NATIVE, normalized.plugin))
        self.assertEqual(normalized.name, "made")

        from_class = normalize_plugin(LoggerPlugin)
        self.assertIsInstance(from_class.plugin, LoggerPlugin)

        partial = normalize_plugin(functools.partial(dict, name="partial", meta={"vite": True}))
        self.assertIs(partial.kind, PluginKind.VITE)

    def test_invalid_options(self) -> None:
        for option in (None, "plugin", 3, lambda: None):
            with self.assertRaises(TypeError):
                normalize_plugin(option)

    def test_normalize_plugins_keeps_order(self) -> None:
        plugins = normalize_plugins([{"name": "a"}, {"name": "b", "config": print}])
        self.assertEqual([plugin.name for plugin in plugins], ["a", "b"])
        self.assertEqual([plugin.kind for plugin in plugins], [PluginKind.ENGINE_NATIVE, PluginKind.VITE])


if __name__ == "__main__":
    unittest.main()
