"""Normalization of raw build entries into immutable entry objects."""
from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple
import json
import os

from .config import (
    SHARED_FIELDS,
    BuildConfig,
    BuildEntry,
    BundleEntry,
    CopyRule,
    EntryKind,
    TransformEntry,
    canonical_keys,
)
from .engine import ModuleResolver
from .errors import ConfigurationError, ModuleResolutionError
from .external import coerce_external_option
from .formats import normalize_format, normalize_platform


DEFAULT_EXTENSIONS: Tuple[str, ...] = (".ts", ".js", ".mjs", ".cjs", ".json")


class FileSystemResolver:
    """Resolve specifiers against the filesystem, trying extensions and index files."""

    def __init__(
        self,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        *,
        index_name: str = "index",
    ) -> None:
        self.extensions = tuple(extensions)
        self.index_name = index_name

    def candidates(self, path: Path) -> Iterable[Path]:
        yield path
        for extension in self.extensions:
            yield path.with_name(f"{path.name}{extension}")
        for extension in self.extensions:
            yield path / f"{self.index_name}{extension}"

    def resolve(self, specifier: str, base_dir: Path) -> Path:
        path = normalize_path(specifier, base_dir)
        for candidate in self.candidates(path):
            if candidate.is_file():
                return candidate
        raise ModuleResolutionError(specifier, base_dir)


def normalize_path(value: str | os.PathLike[str] | None, base_dir: Path) -> Path:
    """Absolute paths are kept; anything else is resolved against ``base_dir``."""

    path = Path(value) if value is not None else Path(".")
    if not path.is_absolute():
        path = base_dir / path
    return Path(os.path.normpath(path))


def is_within(path: Path, root: Path) -> bool:
    """True if ``path`` lies strictly inside ``root``."""

    return path != root and root in path.parents


def parse_entry_string(text: str) -> Dict[str, Any]:
    """Parse the ``"path[,path...]:outDir"`` shorthand.

    A trailing ``/`` on the path selects a transform entry.
    """

    source, _, out_dir = text.partition(":")
    source = source.strip()
    data: Dict[str, Any]
    if source.endswith("/"):
        data = {"kind": EntryKind.TRANSFORM.value, "input": source}
    else:
        paths = [part.strip() for part in source.split(",") if part.strip()]
        data = {"kind": EntryKind.BUNDLE.value, "input": paths}
    if out_dir.strip():
        data["out_dir"] = out_dir.strip()
    return data


def _entry_class(kind: Any) -> type:
    try:
        resolved = EntryKind(str(kind).lower())
    except ValueError:
        raise ConfigurationError(f"Unknown entry type '{kind}' (allowed: bundle, transform)") from None
    return BundleEntry if resolved is EntryKind.BUNDLE else TransformEntry


def _field_names(cls: type) -> set[str]:
    return {item.name for item in fields(cls)}


def inherit_shared(data: Dict[str, Any], shared: Mapping[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    """Fill fields the entry leaves unset from the top-level configuration."""

    allowed_names = set(allowed)
    result = dict(data)
    for key in SHARED_FIELDS:
        if key not in allowed_names:
            continue
        if result.get(key) is None and shared.get(key) is not None:
            result[key] = shared[key]
    return result


def _describe(data: Mapping[str, Any]) -> str:
    return json.dumps(data, indent=2, default=str, sort_keys=True)


def _check_inside(path: Path, pkg_dir: Path) -> Path:
    if not is_within(path, pkg_dir):
        raise ConfigurationError(f"Source should be within the package directory ({pkg_dir}): {path}")
    return path


def _coerce_clean(value: Any) -> bool | Tuple[str, ...]:
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Sequence):
        return tuple(str(item) for item in value)
    raise ConfigurationError("clean must be a boolean or a list of paths")


def _coerce_addon(value: Any, *, field_name: str) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return {str(key): str(text) for key, text in value.items()}
    raise ConfigurationError(f"{field_name} must be a string or a per-format mapping")


def _coerce_node_protocol(value: Any) -> bool | str:
    if value in (None, False):
        return False
    if value is True or value == "strip":
        return value
    raise ConfigurationError(f"node_protocol must be true, false or 'strip', got {value!r}")


def _coerce_out_extensions(value: Any) -> Any:
    if value is None or callable(value):
        return value
    if not isinstance(value, Mapping):
        raise ConfigurationError("out_extensions must be a per-format mapping or a callable")
    result: Dict[str, Any] = {}
    for key, extensions in value.items():
        if extensions is not None and not isinstance(extensions, Mapping):
            raise ConfigurationError(f"out_extensions.{key} must map 'js'/'dts' to extensions")
        result[normalize_format(key).value] = dict(extensions or {})
    return result


def _coerce_mapping(value: Any, *, field_name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{field_name} must be a mapping")
    return {str(key): item for key, item in value.items()}


def _coerce_formats(value: Any) -> tuple:
    if value is None:
        return (normalize_format("esm"),)
    values = [value] if isinstance(value, str) else list(value)
    if not values:
        raise ConfigurationError("formats must not be empty")
    return tuple(normalize_format(item) for item in values)


def _bundle_input(value: Any, pkg_dir: Path) -> Any:
    if isinstance(value, Mapping):
        return {str(name): _check_inside(normalize_path(src, pkg_dir), pkg_dir) for name, src in value.items()}
    if isinstance(value, (list, tuple)):
        return tuple(_check_inside(normalize_path(src, pkg_dir), pkg_dir) for src in value)
    return _check_inside(normalize_path(value, pkg_dir), pkg_dir)


def normalize_entry(raw: Any, *, pkg_dir: Path, shared: Mapping[str, Any] | None = None) -> BuildEntry:
    """Turn a raw entry (string shorthand, mapping or entry object) into an entry."""

    if isinstance(raw, (BundleEntry, TransformEntry)):
        return raw
    if isinstance(raw, str):
        data = parse_entry_string(raw)
    elif isinstance(raw, Mapping):
        data = canonical_keys(raw)
    else:
        raise ConfigurationError(f"Build entries must be strings or mappings, got {type(raw).__name__}")

    cls = _entry_class(data.pop("kind", EntryKind.BUNDLE.value))
    allowed = _field_names(cls)
    data = inherit_shared(data, shared or {}, allowed)

    if not data.get("input"):
        raise ConfigurationError(f"Build entry missing `input` or `entry`: {_describe(data)}")

    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown option(s) for {cls.kind.value} entry: {', '.join(unknown)}")

    out_dir = normalize_path(data.pop("out_dir", None) or "dist", pkg_dir)
    raw_input = data.pop("input")
    copy_rules = data.pop("copy", None) or ()
    if isinstance(copy_rules, (str, Mapping)):
        copy_rules = [copy_rules]

    options: Dict[str, Any] = {
        "out_dir": out_dir,
        "platform": normalize_platform(data.pop("platform", None)),
        "target": str(data.pop("target", None) or "es2022"),
        "clean": _coerce_clean(data.pop("clean", True)),
        "minify": data.pop("minify", False) or False,
        "sourcemap": data.pop("sourcemap", False) or False,
        "declarations": data.pop("declarations", True),
        "hash": bool(data.pop("hash", False)),
        "fixed_extension": bool(data.pop("fixed_extension", False)),
        "out_extensions": _coerce_out_extensions(data.pop("out_extensions", None)),
        "banner": _coerce_addon(data.pop("banner", None), field_name="banner"),
        "footer": _coerce_addon(data.pop("footer", None), field_name="footer"),
        "node_protocol": _coerce_node_protocol(data.pop("node_protocol", False)),
        "alias": _coerce_mapping(data.pop("alias", None), field_name="alias"),
        "copy": tuple(CopyRule.from_value(rule) for rule in copy_rules),
    }
    if options["declarations"] is None:
        options["declarations"] = True

    if cls is TransformEntry:
        if not isinstance(raw_input, (str, os.PathLike)):
            raise ConfigurationError("Transform entries take a single input directory")
        return TransformEntry(input=_check_inside(normalize_path(raw_input, pkg_dir), pkg_dir), **options)

    try:
        external = coerce_external_option(data.pop("external", None), field_name="external")
        no_external = coerce_external_option(data.pop("no_external", None), field_name="no_external")
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from exc

    return BundleEntry(
        input=_bundle_input(raw_input, pkg_dir),
        formats=_coerce_formats(data.pop("formats", None)),
        global_name=data.pop("global_name", None),
        external=external,
        no_external=no_external,
        env=_coerce_mapping(data.pop("env", None), field_name="env"),
        define={key: str(value) for key, value in _coerce_mapping(data.pop("define", None), field_name="define").items()},
        treeshake=data.pop("treeshake", None),
        engine_options=_coerce_mapping(data.pop("engine_options", None), field_name="engine_options"),
        **options,
    )


def normalize_entries(config: BuildConfig, pkg_dir: Path | None = None) -> List[BuildEntry]:
    """Normalize every configured entry; a tsup-style ``entry`` becomes one bundle entry."""

    root = pkg_dir or config.cwd
    raw_entries = list(config.entries)
    if not raw_entries and config.entry is not None:
        raw: Dict[str, Any] = {"kind": EntryKind.BUNDLE.value, "input": config.entry}
        if config.global_name:
            raw["global_name"] = config.global_name
        raw_entries = [raw]
    return [normalize_entry(raw, pkg_dir=root, shared=config.shared) for raw in raw_entries]


def dist_name_for(source: Path, pkg_dir: Path) -> str:
    """Output name of ``source``: its path under ``src/`` (or the package root) without extension."""

    for root in (pkg_dir / "src", pkg_dir):
        try:
            relative = source.relative_to(root)
        except ValueError:
            continue
        return relative.with_suffix("").as_posix()
    raise ConfigurationError(f"Source should be within the package directory ({pkg_dir}): {source}")


def normalize_bundle_inputs(
    entry: BundleEntry,
    pkg_dir: Path,
    resolver: ModuleResolver | None = None,
) -> Dict[str, Path]:
    """Map distribution names to resolved source files for one bundle entry."""

    resolver = resolver or FileSystemResolver()
    inputs: Dict[str, Path] = {}

    if isinstance(entry.input, Mapping):
        for name, source in entry.input.items():
            inputs[name] = _check_inside(resolver.resolve(str(source), pkg_dir), pkg_dir)
        return inputs

    sources = entry.input if isinstance(entry.input, tuple) else (entry.input,)
    for source in sources:
        resolved = _check_inside(resolver.resolve(str(source), pkg_dir), pkg_dir)
        dist_name = dist_name_for(resolved, pkg_dir)
        existing = inputs.get(dist_name)
        if existing is not None and existing != resolved:
            raise ConfigurationError(
                f'Rename one of the entries to avoid a conflict in the dist name "{dist_name}":\n'
                f" - {resolved}\n - {existing}"
            )
        inputs[dist_name] = resolved
    return inputs


def resolve_all_inputs(
    entries: Sequence[BuildEntry],
    pkg_dir: Path,
    resolver: ModuleResolver | None = None,
) -> List[Dict[str, Path] | None]:
    """Resolve inputs of every bundle entry, rejecting dist-name collisions across entries.

    The result is aligned with ``entries``; transform entries map to ``None``.
    """

    resolved: List[Dict[str, Path] | None] = []
    seen: Dict[Tuple[Path, str], Path] = {}
    for entry in entries:
        if not isinstance(entry, BundleEntry):
            resolved.append(None)
            continue
        inputs = normalize_bundle_inputs(entry, pkg_dir, resolver)
        for dist_name, source in inputs.items():
            key = (entry.out_dir, dist_name)
            existing = seen.get(key)
            if existing is not None and existing != source:
                raise ConfigurationError(
                    f'Rename one of the entries to avoid a conflict in the dist name "{dist_name}" '
                    f"in {entry.out_dir}:\n - {source}\n - {existing}"
                )
            seen[key] = source
        resolved.append(inputs)
    return resolved


__all__ = [
    "DEFAULT_EXTENSIONS",
    "FileSystemResolver",
    "dist_name_for",
    "inherit_shared",
    "is_within",
    "normalize_bundle_inputs",
    "normalize_entries",
    "normalize_entry",
    "normalize_path",
    "parse_entry_string",
    "resolve_all_inputs",
]
