"""File-by-file transformation of transform entries."""
from __future__ import annotations

from pathlib import Path
from typing import Any, List, Mapping, Sequence
import asyncio
import os
import shutil

from .builtins import transform_node_protocol
from .config import BuildContext, TransformEntry
from .core.hashing import has_hash, rename_with_hash
from .engine import (
    ImportRecord,
    MinifyService,
    ModuleResolver,
    TransformOptions,
    TransformResult,
    TransformService,
    maybe_await,
)
from .entries import FileSystemResolver
from .errors import TransformError
from .formats import OutputFormat, apply_out_extensions
from .outputs import (
    add_banner_footer,
    clean_output_dir,
    copy_files,
    has_shebang,
    make_executable,
    resolve_chunk_addon,
)


TRANSFORMABLE_SUFFIXES = (".ts", ".tsx", ".jsx")
RESOLVE_EXTENSIONS = (".ts", ".tsx", ".jsx", ".js", ".mjs", ".cjs", ".json")
DUMP_FILE_NAME = "build-dump.ts"

# Declaration-generation notices that do not make the output unusable.
_IGNORED_ERRORS = ("--isolatedDeclarations",)


def _relative_specifier(target: Path, base_dir: Path) -> str:
    relative = Path(os.path.relpath(target, base_dir)).as_posix()
    return relative if relative.startswith(".") else f"./{relative}"


def apply_alias(specifier: str, alias: Mapping[str, str]) -> tuple[str, bool]:
    for name, target in alias.items():
        if specifier == name or specifier.startswith(f"{name}/"):
            return f"{target}{specifier[len(name):]}", True
    return specifier, False


class TransformBuilder:
    def __init__(
        self,
        *,
        ctx: BuildContext,
        transformer: TransformService,
        minifier: MinifyService | None = None,
        resolver: ModuleResolver | None = None,
    ) -> None:
        self._ctx = ctx
        self._transformer = transformer
        self._minifier = minifier
        self._resolver = resolver or FileSystemResolver(RESOLVE_EXTENSIONS)

    async def build(self, entry: TransformEntry) -> List[Path]:
        ctx = self._ctx
        console = ctx.console

        await asyncio.to_thread(clean_output_dir, ctx.pkg_dir, entry.out_dir, entry.clean, console)

        input_dir: Path = entry.input
        if input_dir.is_file():
            input_dir = input_dir.parent
            console.warn(f"Transform input should be a directory, not a file. Using directory: {input_dir}")

        written: List[Path] = []
        files = sorted(path for path in input_dir.rglob("*") if path.is_file())
        for source in files:
            relative = source.relative_to(input_dir)
            if source.suffix in TRANSFORMABLE_SUFFIXES:
                written.append(await self._emit_module(entry, source, relative))
                continue
            copied = await asyncio.to_thread(self._copy_plain_file, entry, source, relative)
            if copied is not None:
                written.append(copied)

        if entry.copy:
            await asyncio.to_thread(copy_files, ctx.pkg_dir, entry.out_dir, entry.copy, console)

        console.log(f"[transform] {entry.out_dir}/ ({len(written)} files)")
        return written

    def _copy_plain_file(self, entry: TransformEntry, source: Path, relative: Path) -> Path | None:
        destination = entry.out_dir / relative
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)
        except OSError as exc:
            self._ctx.console.warn(f"Failed to copy {source} to {destination}: {exc}")
            return None
        if has_shebang(source.read_text(encoding="utf-8", errors="ignore")):
            make_executable(destination)
        return destination

    async def _emit_module(self, entry: TransformEntry, source: Path, relative: Path) -> Path:
        extension, dts_extension = apply_out_extensions(
            OutputFormat.ESM,
            entry.out_extensions,
            platform=entry.platform,
            fixed_extension=entry.fixed_extension,
        )
        result = await self.transform_module(entry, source, extension)

        base = entry.out_dir / relative.with_suffix("")
        destination = base.with_name(f"{base.name}{extension}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(result.code, encoding="utf-8")

        if entry.sourcemap and result.map:
            destination.with_name(f"{destination.name}.map").write_text(result.map, encoding="utf-8")

        if result.declaration and entry.declarations:
            base.with_name(f"{base.name}{dts_extension}").write_text(result.declaration, encoding="utf-8")

        if entry.hash and not has_hash(destination.name):
            destination = rename_with_hash(
                destination,
                result.code,
                declaration_extension=dts_extension,
                js_extension=extension,
            )

        if has_shebang(result.code):
            make_executable(destination)
        return destination

    async def transform_module(self, entry: TransformEntry, source: Path, extension: str = ".mjs") -> TransformResult:
        """Transform one source file and apply the entry's code post-processing."""

        text = source.read_text(encoding="utf-8")
        options = TransformOptions(
            target=entry.target,
            sourcemap=bool(entry.sourcemap),
            declaration=bool(entry.declarations),
            lang="tsx" if source.suffix in {".tsx", ".jsx"} else "ts",
        )
        result: TransformResult = await maybe_await(self._transformer.transform(source, text, options))

        errors = [error for error in result.errors if not any(marker in str(error) for marker in _IGNORED_ERRORS)]
        if errors:
            dump_path = self._ctx.pkg_dir / DUMP_FILE_NAME
            dump_path.write_text(f"/** Error dump for {source} */\n\n{text}", encoding="utf-8")
            raise TransformError(source, errors, dump_path=dump_path)

        code = self.rewrite_imports(entry, source, result.code, result.imports, extension)
        source_map = result.map

        if entry.minify:
            if self._minifier is None:
                self._ctx.console.warn(f"Minification requested for {source} but no minify service is configured")
            else:
                options_map: Mapping[str, Any] = entry.minify if isinstance(entry.minify, Mapping) else {}
                minified = await maybe_await(self._minifier.minify(source, code, options_map))
                code = minified.code
                source_map = minified.map

        code = add_banner_footer(
            code,
            resolve_chunk_addon(entry.banner, OutputFormat.ESM),
            resolve_chunk_addon(entry.footer, OutputFormat.ESM),
        )
        if entry.node_protocol:
            code = transform_node_protocol(code, entry.node_protocol)

        return TransformResult(
            code=code,
            map=source_map,
            declaration=result.declaration,
            errors=(),
            imports=result.imports,
        )

    def rewrite_imports(
        self,
        entry: TransformEntry,
        source: Path,
        code: str,
        imports: Sequence[ImportRecord],
        extension: str = ".mjs",
    ) -> str:
        """Point relative (and aliased) specifiers at the emitted sibling files."""

        base_dir = source.parent
        rewritten = code
        seen: set[int] = set()
        for record in sorted(imports, key=lambda item: item.start, reverse=True):
            if record.start in seen:
                continue
            seen.add(record.start)

            specifier, aliased = apply_alias(record.specifier, entry.alias)
            if not specifier.startswith(".") and not aliased:
                continue

            resolved = self._resolver.resolve(specifier, base_dir)
            if resolved.suffix in TRANSFORMABLE_SUFFIXES:
                resolved = resolved.with_suffix(extension)
            replacement = _relative_specifier(resolved, base_dir)
            rewritten = f"{rewritten[:record.start]}{replacement}{rewritten[record.end:]}"
        return rewritten


__all__ = [
    "DUMP_FILE_NAME",
    "RESOLVE_EXTENSIONS",
    "TRANSFORMABLE_SUFFIXES",
    "TransformBuilder",
    "apply_alias",
]
