"""Classification of user plugins handed to the bundling engine."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping
import functools
import inspect


class PluginKind(str, Enum):
    ROBUILD = "robuild"
    ENGINE_NATIVE = "engine"
    VITE = "vite"
    UNPLUGIN = "unplugin"


_ROBUILD_HOOKS = ("robuild_setup", "robuild_build_start", "robuild_build_end")
_ENGINE_HOOKS = (
    "build_start",
    "build_end",
    "resolve_id",
    "load",
    "transform",
    "generate_bundle",
    "write_bundle",
)
_VITE_HOOKS = ("config", "config_resolved", "configure_server")


@dataclass(frozen=True, slots=True)
class NormalizedPlugin:
    kind: PluginKind
    plugin: Any

    @property
    def name(self) -> str | None:
        value = _get(self.plugin, "name")
        return str(value) if value else None


def _get(plugin: Any, key: str) -> Any:
    if isinstance(plugin, Mapping):
        return plugin.get(key)
    return getattr(plugin, key, None)


def _meta_flag(plugin: Any, flag: str) -> bool:
    meta = _get(plugin, "meta")
    if meta is None:
        return False
    return _get(meta, flag) is True


def _has_any(plugin: Any, names: Iterable[str]) -> bool:
    return any(_get(plugin, name) for name in names)


def _is_factory(option: Any) -> bool:
    return (
        inspect.isfunction(option)
        or inspect.ismethod(option)
        or inspect.isclass(option)
        or isinstance(option, functools.partial)
    )


def classify_plugin(plugin: Any) -> PluginKind:
    """Return the plugin's kind, checking robuild, engine, vite and unplugin markers in order."""

    if _meta_flag(plugin, "robuild") or _has_any(plugin, _ROBUILD_HOOKS):
        return PluginKind.ROBUILD
    if _get(plugin, "name") and _has_any(plugin, _ENGINE_HOOKS):
        return PluginKind.ENGINE_NATIVE
    if _meta_flag(plugin, "vite") or _has_any(plugin, _VITE_HOOKS):
        return PluginKind.VITE
    if _get(plugin, "unplugin") is True or _meta_flag(plugin, "unplugin"):
        return PluginKind.UNPLUGIN
    return PluginKind.ENGINE_NATIVE


def normalize_plugin(option: Any) -> NormalizedPlugin:
    while _is_factory(option):
        option = option()
    if option is None or isinstance(option, (str, bytes, int, float, bool)):
        raise TypeError(f"Invalid plugin option: {type(option).__name__}")
    if isinstance(option, NormalizedPlugin):
        return option
    return NormalizedPlugin(kind=classify_plugin(option), plugin=option)


def normalize_plugins(options: Iterable[Any]) -> List[NormalizedPlugin]:
    return [normalize_plugin(option) for option in options]


__all__ = [
    "NormalizedPlugin",
    "PluginKind",
    "classify_plugin",
    "normalize_plugin",
    "normalize_plugins",
]
