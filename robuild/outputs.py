"""Filesystem post-processing of build outputs."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Mapping
import shutil

from .config import Addon, CopyRule
from .core.console import BuildConsole
from .entries import is_within, normalize_path
from .formats import OutputFormat


SHEBANG_PREFIX = "#!"
EXECUTABLE_MODE = 0o755


def _display(path: Path, root: Path) -> str:
    try:
        return f"./{path.relative_to(root).as_posix()}"
    except ValueError:
        return str(path)


def clean_output_dir(
    pkg_dir: Path,
    out_dir: Path,
    clean: bool | Iterable[str],
    console: BuildConsole,
) -> List[Path]:
    """Remove ``out_dir`` (``clean=True``) or the listed paths relative to ``pkg_dir``.

    Paths that are not strictly inside the package directory are never removed.
    """

    if not clean:
        return []

    targets = [out_dir] if clean is True else [normalize_path(path, pkg_dir) for path in clean]
    removed: List[Path] = []
    for target in targets:
        if not is_within(target, pkg_dir):
            console.warn(f"Refusing to clean {target}: not inside the package directory {pkg_dir}")
            continue
        if not target.exists():
            continue
        console.log(f"Cleaning {_display(target, pkg_dir)}")
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
        removed.append(target)
    return removed


def copy_files(
    pkg_dir: Path,
    out_dir: Path,
    rules: Iterable[CopyRule],
    console: BuildConsole,
) -> List[Path]:
    """Copy files or directories; a failing rule is reported and skipped."""

    copied: List[Path] = []
    for rule in rules:
        source = normalize_path(rule.source, pkg_dir)
        destination = (
            normalize_path(rule.target, pkg_dir) if rule.target else out_dir / source.name
        )
        try:
            if source.is_dir():
                shutil.copytree(source, destination, dirs_exist_ok=True)
            else:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
        except OSError as exc:
            console.warn(f"Failed to copy {rule.source} to {destination}: {exc}")
            continue
        console.verbose(f"Copied {rule.source} -> {_display(destination, pkg_dir)}")
        copied.append(destination)
    return copied


def has_shebang(code: str) -> bool:
    return code.startswith(SHEBANG_PREFIX)


def make_executable(path: Path) -> None:
    path.chmod(EXECUTABLE_MODE)


def resolve_chunk_addon(addon: Addon, format: OutputFormat | str) -> str | None:
    """Pick the banner/footer text for ``format``.

    Per-format mappings are keyed by format name, with ``js`` standing for
    ESM and serving as the fallback for every other format.
    """

    if not addon:
        return None
    if isinstance(addon, str):
        return addon
    fmt = OutputFormat(format)
    key = "js" if fmt is OutputFormat.ESM else fmt.value
    return _lookup(addon, key) or _lookup(addon, "js")


def _lookup(addon: Mapping[str, str], key: str) -> str | None:
    value = addon.get(key)
    return value or None


def add_banner_footer(code: str, banner: str | None = None, footer: str | None = None) -> str:
    if banner:
        code = f"{banner}\n{code}"
    if footer:
        code = f"{code}\n{footer}"
    return code


__all__ = [
    "EXECUTABLE_MODE",
    "add_banner_footer",
    "clean_output_dir",
    "copy_files",
    "has_shebang",
    "make_executable",
    "resolve_chunk_addon",
]
