"""``package.json`` export-map generation."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Sequence
import json
import os

from .config import BuildEntry, BundleEntry
from .formats import OutputFormat
from .report import OutputRecord


def _package_path(path: Path, pkg_dir: Path) -> str:
    return f"./{Path(os.path.relpath(path, pkg_dir)).as_posix()}"


def export_key(dist_name: str) -> str:
    if dist_name == "index":
        return "."
    if dist_name.endswith("/index"):
        return f"./{dist_name[: -len('/index')]}"
    return f"./{dist_name}"


def export_value(conditions: Mapping[str, str]) -> Any:
    """Order conditions as types/import/require; a lone condition collapses to a string."""

    value = {key: conditions[key] for key in ("types", "import", "require") if key in conditions}
    if len(value) == 1 and "types" not in value:
        return next(iter(value.values()))
    return value


def _renamed_outputs(outputs: Iterable[OutputRecord]) -> Dict[Path, Path]:
    return {
        record.planned_path: record.path
        for record in outputs
        if record.planned_path is not None and record.planned_path != record.path
    }


def generate_exports(
    pkg_dir: Path,
    entries: Sequence[BuildEntry],
    inputs: Sequence[Mapping[str, Path] | None],
    *,
    custom: Mapping[str, Any] | None = None,
    include_types: bool = True,
    outputs: Iterable[OutputRecord] = (),
) -> Dict[str, Any]:
    """Build the ``exports`` field from the format plans of every bundle entry.

    ``inputs`` holds the resolved dist names of each entry, aligned with
    ``entries``. Transform entries do not contribute exports. Files that
    ``outputs`` reports as renamed (content hashing) are exported under their
    final name, together with their declaration sibling.
    """

    renamed = _renamed_outputs(outputs)
    exports: Dict[str, Any] = dict(custom or {})
    for entry, entry_inputs in zip(entries, inputs):
        if not isinstance(entry, BundleEntry) or not entry_inputs:
            continue
        plans = entry.format_plans()
        for dist_name in entry_inputs:
            conditions: Dict[str, str] = {}
            for plan in plans:
                assert plan.out_dir is not None
                planned = plan.out_dir / f"{dist_name}{plan.extension}"
                actual = renamed.get(planned, planned)
                target = _package_path(actual, pkg_dir)
                if plan.format is OutputFormat.ESM:
                    conditions["import"] = target
                elif plan.format is OutputFormat.CJS:
                    conditions["require"] = target
                else:
                    conditions.setdefault("import", target)
                if include_types and entry.declarations and plan.emits_declarations:
                    stem = actual.name[: -len(plan.extension)] if actual.name.endswith(plan.extension) else actual.stem
                    conditions["types"] = _package_path(
                        actual.with_name(f"{stem}{plan.declaration_extension}"), pkg_dir
                    )
            if conditions:
                exports[export_key(dist_name)] = export_value(conditions)
    return exports


def update_package_exports(pkg_dir: Path, exports: Mapping[str, Any]) -> Path:
    """Write ``exports`` into ``package.json`` (2-space indent, trailing newline)."""

    manifest_path = pkg_dir / "package.json"
    manifest: Dict[str, Any] = {}
    if manifest_path.is_file():
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    manifest["exports"] = dict(exports)
    manifest_path.write_text(json.dumps(manifest, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return manifest_path


__all__ = ["export_key", "export_value", "generate_exports", "update_package_exports"]
