"""Drive the bundling engine for bundle entries."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Sequence
import asyncio
import functools
import json

from .builtins import transform_node_protocol
from .config import BuildContext, BuildHooks, BundleEntry
from .core.hashing import has_hash, rename_with_hash
from .engine import (
    BundleEngine,
    ChunkTransform,
    EngineConfig,
    MinifyService,
    OutputConfig,
    WriteResult,
    maybe_await,
)
from .errors import EngineError, RobuildError
from .external import resolve_external_config
from .formats import FormatPlan, OutputFormat
from .graph import DependencyResolver
from .outputs import (
    add_banner_footer,
    clean_output_dir,
    copy_files,
    has_shebang,
    make_executable,
    resolve_chunk_addon,
)
from .plugins import NormalizedPlugin
from .report import OutputRecord, dist_size, render_report


def build_define(env: Dict[str, Any], define: Dict[str, str]) -> Dict[str, str]:
    """``process.env.KEY`` replacements from ``env`` overlaid by explicit ``define`` values."""

    result = {f"process.env.{key}": json.dumps(value) for key, value in env.items()}
    result.update(define)
    return result


def chunk_transforms(entry: BundleEntry, format: OutputFormat) -> List[ChunkTransform]:
    transforms: List[ChunkTransform] = []
    if entry.node_protocol:
        transforms.append(
            ChunkTransform(
                name="node-protocol",
                apply=functools.partial(transform_node_protocol, mode=entry.node_protocol),
            )
        )
    banner = resolve_chunk_addon(entry.banner, format)
    footer = resolve_chunk_addon(entry.footer, format)
    if banner or footer:
        transforms.append(
            ChunkTransform(
                name="banner",
                apply=functools.partial(add_banner_footer, banner=banner, footer=footer),
            )
        )
    return transforms


class BundleBuilder:
    def __init__(
        self,
        *,
        engine: BundleEngine,
        ctx: BuildContext,
        hooks: BuildHooks | None = None,
        minifier: MinifyService | None = None,
        plugins: Sequence[NormalizedPlugin] = (),
    ) -> None:
        self._engine = engine
        self._ctx = ctx
        self._hooks = hooks or BuildHooks()
        self._minifier = minifier
        self._plugins = list(plugins)

    def plan_formats(self, entry: BundleEntry) -> List[FormatPlan]:
        return entry.format_plans()

    def compose_engine_config(
        self,
        entry: BundleEntry,
        inputs: Dict[str, Path],
        plan: FormatPlan,
        external: Any,
    ) -> EngineConfig:
        return EngineConfig(
            cwd=self._ctx.pkg_dir,
            input=dict(inputs),
            format=plan.module_format,
            platform=entry.platform.value,
            target=entry.target,
            external=external,
            alias=dict(entry.alias),
            define=build_define(dict(entry.env), dict(entry.define)),
            treeshake=entry.treeshake,
            declarations=entry.declarations if plan.emits_declarations and entry.declarations else None,
            plugins=list(self._plugins),
            chunk_transforms=chunk_transforms(entry, plan.format),
            extra=dict(entry.engine_options),
        )

    def compose_output_config(self, entry: BundleEntry, plan: FormatPlan) -> OutputConfig:
        assert plan.out_dir is not None
        return OutputConfig(
            dir=plan.out_dir,
            format=plan.module_format,
            entry_file_names=plan.entry_pattern,
            chunk_file_names=plan.chunk_pattern,
            plan=plan,
            minify=entry.minify,
            sourcemap=entry.sourcemap,
            name=entry.global_name,
        )

    async def build(self, entry: BundleEntry, inputs: Dict[str, Path]) -> List[OutputRecord]:
        ctx = self._ctx
        console = ctx.console

        if not ctx.dry_run:
            await asyncio.to_thread(clean_output_dir, ctx.pkg_dir, entry.out_dir, entry.clean, console)

        external = resolve_external_config(
            ctx.manifest,
            external=entry.external,
            no_external=entry.no_external,
            console=console,
        )

        records: List[OutputRecord] = []
        for plan in self.plan_formats(entry):
            records.extend(await self._build_format(entry, inputs, plan, external))

        if entry.copy and not ctx.dry_run:
            await asyncio.to_thread(copy_files, ctx.pkg_dir, entry.out_dir, entry.copy, console)

        if records:
            console.log("\n" + render_report(records, root=ctx.pkg_dir))
        ctx.outputs.extend(records)
        return records

    async def _build_format(
        self,
        entry: BundleEntry,
        inputs: Dict[str, Path],
        plan: FormatPlan,
        external: Any,
    ) -> List[OutputRecord]:
        ctx = self._ctx
        label = ", ".join(sorted(inputs))
        engine_config = self.compose_engine_config(entry, inputs, plan, external)

        if self._hooks.before_engine_invoke is not None:
            await maybe_await(self._hooks.before_engine_invoke(engine_config, ctx))

        try:
            handle = await maybe_await(self._engine.build(engine_config))
        except RobuildError:
            raise
        except Exception as exc:
            raise EngineError(f"Engine build failed: {exc}", entry=label, format=plan.format.value) from exc

        output_config = self.compose_output_config(entry, plan)
        try:
            if self._hooks.before_write is not None:
                await maybe_await(self._hooks.before_write(output_config, handle, ctx))

            try:
                result: WriteResult = await maybe_await(handle.write(output_config))
            except RobuildError:
                raise
            except Exception as exc:
                raise EngineError(f"Engine write failed: {exc}", entry=label, format=plan.format.value) from exc
        finally:
            close = getattr(handle, "close", None)
            if close is not None:
                await maybe_await(close())

        return await self._process_chunks(entry, plan, output_config, result)

    async def _process_chunks(
        self,
        entry: BundleEntry,
        plan: FormatPlan,
        output_config: OutputConfig,
        result: WriteResult,
    ) -> List[OutputRecord]:
        ctx = self._ctx
        # The before_write hook may have redirected the output directory.
        out_dir = Path(output_config.dir)
        resolver = DependencyResolver(
            result.chunks,
            scope=f"{plan.format.value}:{out_dir}",
            cache=ctx.dependency_cache,
        )

        records: List[OutputRecord] = []
        for chunk in result.chunks:
            if not chunk.is_entry or chunk.is_declaration:
                continue

            file_name = chunk.file_name
            planned_path = path = out_dir / file_name

            if has_shebang(chunk.code) and path.exists():
                await asyncio.to_thread(make_executable, path)

            if entry.hash and not has_hash(file_name):
                path = await asyncio.to_thread(
                    rename_with_hash,
                    path,
                    chunk.code,
                    declaration_extension=plan.declaration_extension if plan.emits_declarations else None,
                    js_extension=plan.extension,
                )
                file_name = path.relative_to(out_dir).as_posix()

            sizes = await dist_size(path, minifier=self._minifier)
            records.append(
                OutputRecord(
                    format=plan.format.value,
                    file_name=file_name,
                    path=path,
                    exports=list(chunk.exports),
                    dependencies=resolver.resolve(chunk),
                    size=sizes.size,
                    min_size=sizes.min_size,
                    min_gzip_size=sizes.min_gzip_size,
                    planned_path=planned_path,
                )
            )
        return records


__all__ = ["BundleBuilder", "build_define", "chunk_transforms"]
