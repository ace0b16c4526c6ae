"""Shared helpers for locating and loading configuration mappings."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping

import json
import tomllib

import yaml


ConfigLoader = Callable[[Any], Mapping[str, Any]]


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""

CONFIG_BASENAME = "build.config"


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    with path.open(mode, **kwargs) as handle:
        data = loader(handle)

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")

    return data


def find_config_file(directory: Path, *, basename: str = CONFIG_BASENAME) -> Path | None:
    """Return the single ``basename.<suffix>`` file inside ``directory``, if any."""

    found: List[Path] = []
    for suffix in sorted(FILE_LOADERS):
        candidate = directory / f"{basename}{suffix}"
        if candidate.is_file():
            found.append(candidate)

    if len(found) > 1:
        names = "', '".join(path.name for path in found)
        raise ValueError(
            f"Multiple configuration files found for '{basename}': '{names}'. "
            "Only one format per configuration entry is allowed."
        )
    return found[0] if found else None


def load_manifest(pkg_dir: Path) -> Dict[str, Any]:
    """Read ``package.json`` from ``pkg_dir``; a missing manifest reads as empty."""

    manifest_path = pkg_dir / "package.json"
    if not manifest_path.is_file():
        return {}
    return dict(load_config_file(manifest_path))


def camel_to_snake(key: str) -> str:
    chars: List[str] = []
    for char in key:
        if char.isupper():
            chars.append("_")
            chars.append(char.lower())
        else:
            chars.append(char)
    return "".join(chars).lstrip("_")


def normalize_keys(data: Mapping[str, Any], *, keep: Iterable[str] = ()) -> Dict[str, Any]:
    """Return ``data`` with camelCase keys converted to snake_case.

    Keys listed in ``keep`` are copied verbatim, together with their values.
    """

    preserved = set(keep)
    result: Dict[str, Any] = {}
    for key, value in data.items():
        name = str(key)
        result[name if name in preserved else camel_to_snake(name)] = value
    return result


__all__ = [
    "CONFIG_BASENAME",
    "ConfigLoader",
    "FILE_LOADERS",
    "camel_to_snake",
    "find_config_file",
    "load_config_file",
    "load_manifest",
    "normalize_keys",
]
