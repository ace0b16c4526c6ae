"""Per-format output planning."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Tuple, Union

from .errors import ConfigurationError


class Platform(str, Enum):
    NODE = "node"
    BROWSER = "browser"
    NEUTRAL = "neutral"


class OutputFormat(str, Enum):
    ESM = "esm"
    CJS = "cjs"
    IIFE = "iife"
    UMD = "umd"

    @property
    def module_format(self) -> str:
        """Format tag understood by the bundling engine."""
        return "es" if self is OutputFormat.ESM else self.value


_FORMAT_ALIASES: Dict[str, OutputFormat] = {
    "esm": OutputFormat.ESM,
    "es": OutputFormat.ESM,
    "module": OutputFormat.ESM,
    "cjs": OutputFormat.CJS,
    "commonjs": OutputFormat.CJS,
    "iife": OutputFormat.IIFE,
    "umd": OutputFormat.UMD,
}

_DECLARATION_EXTENSIONS: Dict[OutputFormat, str] = {
    OutputFormat.ESM: ".d.mts",
    OutputFormat.CJS: ".d.cts",
}


def normalize_format(value: str | OutputFormat) -> OutputFormat:
    if isinstance(value, OutputFormat):
        return value
    normalized = str(value).strip().lower()
    try:
        return _FORMAT_ALIASES[normalized]
    except KeyError:
        allowed = ", ".join(sorted(_FORMAT_ALIASES))
        raise ConfigurationError(f"Unknown output format '{value}' (allowed: {allowed})") from None


def normalize_platform(value: str | Platform | None) -> Platform:
    if value is None:
        return Platform.NODE
    if isinstance(value, Platform):
        return value
    try:
        return Platform(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(item.value for item in Platform)
        raise ConfigurationError(f"Unknown platform '{value}' (allowed: {allowed})") from None


def format_extension(
    format: str | OutputFormat,
    platform: str | Platform = Platform.NODE,
    fixed_extension: bool = False,
) -> str:
    fmt = normalize_format(format)
    plat = normalize_platform(platform)
    if fixed_extension:
        return ".cjs" if fmt is OutputFormat.CJS else ".mjs"
    if fmt is OutputFormat.ESM:
        return ".mjs"
    if fmt is OutputFormat.CJS:
        return ".cjs" if plat is Platform.NODE else ".js"
    return ".js"


def declaration_extension(format: str | OutputFormat) -> str:
    return _DECLARATION_EXTENSIONS.get(normalize_format(format), ".d.ts")


OutExtensions = Union[Callable[[str], Any], Mapping[str, Any], None]
"""Per-format ``{"js": ..., "dts": ...}`` overrides, as a mapping keyed by format or a callable."""


def _dotted(value: Any) -> str | None:
    if not value:
        return None
    text = str(value).strip()
    return text if text.startswith(".") else f".{text}"


def apply_out_extensions(
    format: str | OutputFormat,
    out_extensions: OutExtensions = None,
    *,
    platform: str | Platform = Platform.NODE,
    fixed_extension: bool = False,
) -> Tuple[str, str]:
    """Return the ``(js, dts)`` extensions of ``format`` after custom overrides.

    A callable receives the format name (``"esm"``, ``"cjs"``, ...); a mapping is
    looked up by format name or alias. Missing or empty values keep the default.
    """

    fmt = normalize_format(format)
    js = format_extension(fmt, platform, fixed_extension)
    dts = declaration_extension(fmt)
    if out_extensions is None:
        return js, dts

    if callable(out_extensions):
        custom = out_extensions(fmt.value)
    else:
        custom = None
        for key, value in out_extensions.items():
            if normalize_format(key) is fmt:
                custom = value
                break
    if not custom:
        return js, dts
    if not isinstance(custom, Mapping):
        raise ConfigurationError(f"out_extensions for '{fmt.value}' must map 'js'/'dts' to extensions")
    return _dotted(custom.get("js")) or js, _dotted(custom.get("dts")) or dts


def format_subdir(
    format: str | OutputFormat,
    platform: str | Platform,
    is_multi_format: bool,
) -> str | None:
    fmt = normalize_format(format)
    plat = normalize_platform(platform)
    global_script = fmt in {OutputFormat.IIFE, OutputFormat.UMD}

    # Browser global scripts stay apart from node artifacts even in single-format builds.
    if global_script and plat is Platform.BROWSER:
        return "browser"
    if not is_multi_format:
        return None
    if fmt is OutputFormat.ESM:
        return None
    return fmt.value


@dataclass(frozen=True, slots=True)
class FormatPlan:
    format: OutputFormat
    module_format: str
    extension: str
    subdir: str | None
    entry_pattern: str
    chunk_pattern: str
    declaration_extension: str
    out_dir: Path | None = None

    @property
    def emits_declarations(self) -> bool:
        # The declaration generator only understands ESM output.
        return self.format is OutputFormat.ESM

    def to_mapping(self) -> Dict[str, str | None]:
        return {
            "format": self.format.value,
            "module_format": self.module_format,
            "extension": self.extension,
            "subdir": self.subdir,
            "entry_pattern": self.entry_pattern,
            "chunk_pattern": self.chunk_pattern,
            "declaration_extension": self.declaration_extension,
            "out_dir": str(self.out_dir) if self.out_dir is not None else None,
        }


def plan_format(
    format: str | OutputFormat,
    platform: str | Platform = Platform.NODE,
    fixed_extension: bool = False,
    is_multi_format: bool = False,
    *,
    out_dir: Path | None = None,
    out_extensions: OutExtensions = None,
) -> FormatPlan:
    fmt = normalize_format(format)
    extension, dts_extension = apply_out_extensions(
        fmt,
        out_extensions,
        platform=platform,
        fixed_extension=fixed_extension,
    )
    subdir = format_subdir(fmt, platform, is_multi_format)
    resolved_dir: Path | None = None
    if out_dir is not None:
        resolved_dir = out_dir / subdir if subdir else out_dir
    return FormatPlan(
        format=fmt,
        module_format=fmt.module_format,
        extension=extension,
        subdir=subdir,
        entry_pattern=f"[name]{extension}",
        chunk_pattern=f"_chunks/[name]-[hash]{extension}",
        declaration_extension=dts_extension,
        out_dir=resolved_dir,
    )


__all__ = [
    "FormatPlan",
    "OutExtensions",
    "OutputFormat",
    "Platform",
    "apply_out_extensions",
    "declaration_extension",
    "format_extension",
    "format_subdir",
    "normalize_format",
    "normalize_platform",
    "plan_format",
]
