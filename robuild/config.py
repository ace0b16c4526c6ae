"""Build configuration model."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Sequence, Tuple

from .core.config_loader import normalize_keys
from .core.console import BuildConsole, Console
from .errors import ConfigurationError
from .external import ExternalOption
from .formats import FormatPlan, OutExtensions, OutputFormat, Platform, plan_format


Addon = str | Mapping[str, str] | None

KEY_ALIASES: Dict[str, str] = {
    "format": "formats",
    "dts": "declarations",
    "entry": "input",
    "type": "kind",
    "rolldown": "engine_options",
}
"""Alternate spellings accepted in configuration mappings."""

SHARED_FIELDS: Tuple[str, ...] = (
    "formats",
    "out_dir",
    "platform",
    "target",
    "minify",
    "declarations",
    "sourcemap",
    "treeshake",
    "external",
    "no_external",
    "env",
    "define",
    "alias",
    "banner",
    "footer",
    "hash",
    "fixed_extension",
    "out_extensions",
    "clean",
    "node_protocol",
)
"""Top-level fields inherited by entries that do not set them."""

HOOK_NAMES: Tuple[str, ...] = ("start", "entries", "before_engine_invoke", "before_write", "end")


def canonical_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    """snake_case ``data`` and fold alias spellings into their canonical key."""

    result: Dict[str, Any] = {}
    for key, value in normalize_keys(data).items():
        name = KEY_ALIASES.get(key, key)
        if name in result:
            raise ConfigurationError(f"Option '{name}' given more than once (as '{key}')")
        result[name] = value
    return result


class EntryKind(str, Enum):
    BUNDLE = "bundle"
    TRANSFORM = "transform"


@dataclass(frozen=True, slots=True)
class CopyRule:
    source: str
    target: str | None = None

    @classmethod
    def from_value(cls, value: Any) -> "CopyRule":
        if isinstance(value, CopyRule):
            return value
        if isinstance(value, str):
            return cls(source=value)
        if isinstance(value, Mapping):
            source = value.get("from")
            target = value.get("to")
            if not source or not target:
                raise ConfigurationError("Copy rules need both 'from' and 'to'")
            return cls(source=str(source), target=str(target))
        raise ConfigurationError(f"Invalid copy rule: {value!r}")


@dataclass(frozen=True, slots=True)
class BaseEntry:
    input: Any
    out_dir: Path
    platform: Platform = Platform.NODE
    target: str = "es2022"
    clean: bool | Tuple[str, ...] = True
    minify: Any = False
    sourcemap: Any = False
    declarations: Any = True
    hash: bool = False
    fixed_extension: bool = False
    out_extensions: OutExtensions = None
    banner: Addon = None
    footer: Addon = None
    node_protocol: bool | str = False
    alias: Mapping[str, str] = field(default_factory=dict)
    copy: Tuple[CopyRule, ...] = ()

    kind: ClassVar[EntryKind]


@dataclass(frozen=True, slots=True)
class BundleEntry(BaseEntry):
    """A set of source modules bundled into one or more formats.

    ``input`` is a path, a tuple of paths or a name to path mapping.
    """

    formats: Tuple[OutputFormat, ...] = (OutputFormat.ESM,)
    global_name: str | None = None
    external: ExternalOption = None
    no_external: ExternalOption = None
    env: Mapping[str, Any] = field(default_factory=dict)
    define: Mapping[str, str] = field(default_factory=dict)
    treeshake: Any = None
    engine_options: Mapping[str, Any] = field(default_factory=dict)

    kind: ClassVar[EntryKind] = EntryKind.BUNDLE

    @property
    def is_multi_format(self) -> bool:
        return len(self.formats) > 1

    def format_plans(self) -> List[FormatPlan]:
        return [
            plan_format(
                fmt,
                self.platform,
                self.fixed_extension,
                self.is_multi_format,
                out_dir=self.out_dir,
                out_extensions=self.out_extensions,
            )
            for fmt in self.formats
        ]


@dataclass(frozen=True, slots=True)
class TransformEntry(BaseEntry):
    """A source directory transformed file by file into ``out_dir``."""

    kind: ClassVar[EntryKind] = EntryKind.TRANSFORM


BuildEntry = BundleEntry | TransformEntry

Hook = Callable[..., Any]


@dataclass(slots=True)
class BuildHooks:
    start: Hook | None = None
    entries: Hook | None = None
    before_engine_invoke: Hook | None = None
    before_write: Hook | None = None
    end: Hook | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "BuildHooks":
        if not data:
            return cls()
        hooks: Dict[str, Hook] = {}
        for key, value in normalize_keys(data).items():
            if key not in HOOK_NAMES:
                raise ConfigurationError(f"Unknown build hook '{key}' (allowed: {', '.join(HOOK_NAMES)})")
            if value is not None and not callable(value):
                raise ConfigurationError(f"Build hook '{key}' must be callable")
            hooks[key] = value
        return cls(**hooks)


@dataclass(slots=True)
class ExportsConfig:
    enabled: bool = False
    custom: Dict[str, Any] = field(default_factory=dict)
    include_types: bool = True
    update_package_json: bool = True

    @classmethod
    def from_value(cls, value: Any) -> "ExportsConfig":
        if value is None or value is False:
            return cls()
        if value is True:
            return cls(enabled=True)
        if isinstance(value, ExportsConfig):
            return value
        if not isinstance(value, Mapping):
            raise ConfigurationError("exports must be a boolean or a mapping")
        data = normalize_keys(value, keep=("custom",))
        custom = data.get("custom") or {}
        if not isinstance(custom, Mapping):
            raise ConfigurationError("exports.custom must be a mapping")
        return cls(
            enabled=bool(data.get("enabled", True)),
            custom=dict(custom),
            include_types=bool(data.get("include_types", True)),
            update_package_json=bool(data.get("update_package_json", True)),
        )


@dataclass(slots=True)
class BuildConfig:
    cwd: Path = field(default_factory=Path.cwd)
    entries: List[Any] = field(default_factory=list)
    hooks: BuildHooks = field(default_factory=BuildHooks)
    shared: Dict[str, Any] = field(default_factory=dict)
    entry: Any = None
    global_name: str | None = None
    log_level: str = "info"
    fail_on_warn: bool = False
    exports: ExportsConfig = field(default_factory=ExportsConfig)
    plugins: List[Any] = field(default_factory=list)
    on_success: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, cwd: Path | None = None) -> "BuildConfig":
        """Build a config from a mapping with snake_case or camelCase keys."""

        base_dir = cwd or Path.cwd()
        values = canonical_keys(data)

        raw_cwd = values.pop("cwd", None)
        root = base_dir / raw_cwd if raw_cwd else base_dir

        entries = values.pop("entries", None) or []
        if isinstance(entries, (str, Mapping)):
            entries = [entries]
        if not isinstance(entries, Sequence):
            raise ConfigurationError("entries must be a list")

        hooks = values.pop("hooks", None)
        plugins = values.pop("plugins", None) or []
        if not isinstance(plugins, Sequence) or isinstance(plugins, str):
            raise ConfigurationError("plugins must be a list")

        on_success = values.pop("on_success", None)
        if not (on_success is None or callable(on_success) or isinstance(on_success, (str, list, tuple))):
            raise ConfigurationError("on_success must be a command or a callable")

        log_level = str(values.pop("log_level", "info"))
        if log_level not in Console.LEVELS:
            raise ConfigurationError(f"Unknown log level '{log_level}'")

        # tsup-style configs call the global name ``name``.
        name = values.pop("name", None)
        global_name = values.pop("global_name", None) or name

        config = cls(
            cwd=root.resolve(),
            entries=list(entries),
            hooks=hooks if isinstance(hooks, BuildHooks) else BuildHooks.from_mapping(hooks),
            entry=values.pop("input", None),
            global_name=global_name,
            log_level=log_level,
            fail_on_warn=bool(values.pop("fail_on_warn", False)),
            exports=ExportsConfig.from_value(values.pop("exports", None)),
            plugins=list(plugins),
            on_success=on_success,
        )

        for key in SHARED_FIELDS:
            if key in values:
                config.shared[key] = values.pop(key)

        if values:
            unknown = ", ".join(sorted(values))
            raise ConfigurationError(f"Unknown configuration option(s): {unknown}")
        return config


@dataclass(slots=True)
class BuildContext:
    """State shared by every step of a single build."""

    pkg_dir: Path
    manifest: Mapping[str, Any]
    console: BuildConsole
    dependency_cache: Dict[Tuple[str, str], List[str]] = field(default_factory=dict)
    outputs: List[Any] = field(default_factory=list)
    dry_run: bool = False

    @classmethod
    def create(
        cls,
        pkg_dir: Path,
        manifest: Mapping[str, Any],
        console: BuildConsole,
        *,
        dry_run: bool = False,
    ) -> "BuildContext":
        return cls(pkg_dir=pkg_dir, manifest=MappingProxyType(dict(manifest)), console=console, dry_run=dry_run)

    @property
    def package_name(self) -> str:
        return str(self.manifest.get("name") or "<no name>")


__all__ = [
    "Addon",
    "BaseEntry",
    "BuildConfig",
    "BuildContext",
    "BuildEntry",
    "BuildHooks",
    "BundleEntry",
    "CopyRule",
    "EntryKind",
    "ExportsConfig",
    "HOOK_NAMES",
    "KEY_ALIASES",
    "SHARED_FIELDS",
    "TransformEntry",
    "canonical_keys",
]
