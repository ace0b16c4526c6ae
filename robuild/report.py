"""Size metrics and the textual build report."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Tuple
import gzip

from .engine import MinifyService, maybe_await


_UNITS = ("B", "kB", "MB", "GB", "TB")


@dataclass(slots=True)
class SizeInfo:
    size: int
    min_size: int
    min_gzip_size: int


@dataclass(slots=True)
class OutputRecord:
    format: str
    file_name: str
    path: Path
    exports: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    size: int = 0
    min_size: int = 0
    min_gzip_size: int = 0
    planned_path: Path | None = None

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "file_name": self.file_name,
            "path": str(self.path),
            "exports": list(self.exports),
            "dependencies": list(self.dependencies),
            "size": self.size,
            "min_size": self.min_size,
            "min_gzip_size": self.min_gzip_size,
        }


def format_bytes(size: int) -> str:
    """Human readable byte count using decimal units (``1.5 kB``)."""

    if size < 1000:
        return f"{size} B"
    value = float(size)
    unit = _UNITS[0]
    for unit in _UNITS[1:]:
        value /= 1000
        if value < 1000:
            break
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {unit}"


async def dist_size(path: Path, *, minifier: MinifyService | None = None) -> SizeInfo:
    """Raw, minified and minified+gzipped size of a written file.

    Without a minify service the minified size equals the raw size.
    """

    code = path.read_text(encoding="utf-8")
    raw = code.encode("utf-8")
    minified = raw
    if minifier is not None:
        result = await maybe_await(minifier.minify(path, code, {}))
        minified = result.code.encode("utf-8")
    return SizeInfo(
        size=len(raw),
        min_size=len(minified),
        min_gzip_size=len(gzip.compress(minified, compresslevel=9)),
    )


def analyze_dirs(directories: Iterable[Path]) -> Tuple[int, int]:
    """Total byte size and file count of ``directories``, ignoring nested duplicates."""

    roots: List[Path] = []
    for directory in sorted(set(directories)):
        if not any(directory == root or root in directory.parents for root in roots):
            roots.append(directory)

    total_size = 0
    total_files = 0
    for root in roots:
        if not root.is_dir():
            continue
        for path in root.rglob("*"):
            if path.is_file():
                total_size += path.stat().st_size
                total_files += 1
    return total_size, total_files


def _display(path: Path, root: Path | None) -> str:
    if root is None:
        return str(path)
    try:
        return f"./{path.relative_to(root).as_posix()}"
    except ValueError:
        return str(path)


def render_report(records: Sequence[OutputRecord], *, root: Path | None = None, label: str = "bundle") -> str:
    blocks: List[str] = []
    for record in records:
        lines = [
            f"[{label}] {_display(record.path, root)}",
            f"  Size: {format_bytes(record.size)}, {format_bytes(record.min_size)} minified, "
            f"{format_bytes(record.min_gzip_size)} min+gzipped",
        ]
        if any(name != "default" for name in record.exports):
            lines.append(f"  Exports: {', '.join(record.exports)}")
        if record.dependencies:
            lines.append(f"  Dependencies: {', '.join(record.dependencies)}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


__all__ = [
    "OutputRecord",
    "SizeInfo",
    "analyze_dirs",
    "dist_size",
    "format_bytes",
    "render_report",
]
