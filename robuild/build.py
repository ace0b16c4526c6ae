"""Top-level build orchestration and hook lifecycle."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List
import asyncio
import json
import time

from .bundle import BundleBuilder
from .config import BuildConfig, BuildContext, BuildEntry, BundleEntry, TransformEntry
from .core.command_runner import CommandError, CommandRunner, RecordingCommandRunner, SubprocessCommandRunner
from .core.config_loader import load_manifest
from .core.console import BuildConsole, Console
from .engine import BundleEngine, MinifyService, ModuleResolver, TransformService, maybe_await
from .entries import normalize_entries, resolve_all_inputs
from .errors import BuildFailedError, ConfigurationError
from .exports import generate_exports, update_package_exports
from .external import ExternalRuleSet, resolve_external_config
from .plugins import normalize_plugins
from .report import OutputRecord, analyze_dirs, format_bytes
from .transform import TransformBuilder


@dataclass(slots=True)
class BuildResult:
    entries: List[BuildEntry]
    outputs: List[OutputRecord] = field(default_factory=list)
    exports: Dict[str, Any] | None = None
    duration_ms: int = 0


def read_manifest(pkg_dir: Path) -> Dict[str, Any]:
    try:
        return load_manifest(pkg_dir)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ConfigurationError(f"Invalid package.json in {pkg_dir}: {exc}") from exc


async def build(
    config: BuildConfig,
    *,
    engine: BundleEngine,
    transformer: TransformService | None = None,
    minifier: MinifyService | None = None,
    resolver: ModuleResolver | None = None,
    console: BuildConsole | None = None,
    dry_run: bool = False,
    command_runner: CommandRunner | None = None,
) -> BuildResult:
    """Run a complete build described by ``config``.

    With ``dry_run`` nothing is cleaned, copied, transformed or written by the
    orchestrator itself; only the engine is invoked, and an ``on_success``
    command is recorded rather than run.
    """

    started = time.monotonic()
    console = console or Console(config.log_level)
    if isinstance(console, Console):
        console.reset_counts()

    pkg_dir = config.cwd
    manifest = await asyncio.to_thread(read_manifest, pkg_dir)
    ctx = BuildContext.create(pkg_dir, manifest, console, dry_run=dry_run)
    hooks = config.hooks

    console.info(f"Building `{ctx.package_name}` ({pkg_dir})")

    if hooks.start is not None:
        await maybe_await(hooks.start(ctx))

    entries = normalize_entries(config, pkg_dir)

    if hooks.entries is not None:
        await maybe_await(hooks.entries(entries, ctx))

    # Every input is resolved, and every dist-name collision found, before the engine runs.
    inputs = resolve_all_inputs(entries, pkg_dir, resolver)
    if transformer is None and not dry_run and any(isinstance(entry, TransformEntry) for entry in entries):
        raise ConfigurationError("Transform entries require a transform service")

    try:
        plugins = normalize_plugins(config.plugins)
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from exc

    bundler = BundleBuilder(
        engine=engine,
        ctx=ctx,
        hooks=hooks,
        minifier=minifier,
        plugins=plugins,
    )
    transform_builder = (
        TransformBuilder(ctx=ctx, transformer=transformer, minifier=minifier, resolver=resolver)
        if transformer is not None and not dry_run
        else None
    )

    for entry, entry_inputs in zip(entries, inputs):
        if isinstance(entry, BundleEntry):
            assert entry_inputs is not None
            await bundler.build(entry, entry_inputs)
        elif transform_builder is None:
            console.info(f"Skipping transform of {entry.input} (dry run)")
        else:
            await transform_builder.build(entry)

    exports: Dict[str, Any] | None = None
    if config.exports.enabled:
        exports = generate_exports(
            pkg_dir,
            entries,
            inputs,
            custom=config.exports.custom,
            include_types=config.exports.include_types,
            outputs=ctx.outputs,
        )
        if config.exports.update_package_json and not dry_run:
            await asyncio.to_thread(update_package_exports, pkg_dir, exports)
            console.info("Updated package.json exports")

    if hooks.end is not None:
        await maybe_await(hooks.end(ctx))

    should_fail = getattr(console, "should_fail_on_warnings", None)
    if should_fail is not None and should_fail(config.fail_on_warn):
        raise BuildFailedError("Build failed due to warnings")

    size, files = analyze_dirs(entry.out_dir for entry in entries)
    console.info(f"Total dist byte size: {format_bytes(size)} ({files} files)")

    duration_ms = int((time.monotonic() - started) * 1000)
    console.info(f"robuild finished in {duration_ms}ms")
    result = BuildResult(entries=entries, outputs=list(ctx.outputs), exports=exports, duration_ms=duration_ms)

    if dry_run and not isinstance(command_runner, RecordingCommandRunner):
        command_runner = RecordingCommandRunner()
    elif command_runner is None:
        command_runner = SubprocessCommandRunner()
    await run_on_success(
        config.on_success,
        result,
        pkg_dir=pkg_dir,
        runner=command_runner,
        console=console,
        dry_run=dry_run,
    )
    return result


async def run_on_success(
    on_success: Any,
    result: BuildResult,
    *,
    pkg_dir: Path,
    runner: CommandRunner,
    console: BuildConsole,
    dry_run: bool = False,
) -> None:
    """Run the ``on_success`` command (in ``pkg_dir``) or await the callback with ``result``."""

    if not on_success:
        return
    if callable(on_success):
        if dry_run:
            console.info("Skipping on_success callback (dry run)")
            return
        console.verbose("Executing on_success callback")
        await maybe_await(on_success(result))
        return

    console.verbose(f"Executing on_success command: {on_success}")
    try:
        completed = await asyncio.to_thread(runner.run, on_success, cwd=pkg_dir, note="on_success")
    except (CommandError, ValueError) as exc:
        console.error(f"on_success command failed: {exc}")
        raise BuildFailedError(f"on_success command failed: {exc}") from exc
    if completed.stdout.strip():
        console.verbose(f"on_success stdout: {completed.stdout.strip()}")
    if completed.stderr.strip():
        console.warn(f"on_success stderr: {completed.stderr.strip()}")


def _describe_external(rules: Any) -> Any:
    if isinstance(rules, ExternalRuleSet):
        return rules.to_mapping()
    return f"<predicate {getattr(rules, '__name__', 'anonymous')}>"


def describe_build(config: BuildConfig, *, resolver: ModuleResolver | None = None) -> List[Dict[str, Any]]:
    """JSON-ready description of every entry's inputs, format plans and external rules."""

    pkg_dir = config.cwd
    manifest = read_manifest(pkg_dir)
    entries = normalize_entries(config, pkg_dir)
    inputs = resolve_all_inputs(entries, pkg_dir, resolver)

    described: List[Dict[str, Any]] = []
    for entry, entry_inputs in zip(entries, inputs):
        item: Dict[str, Any] = {
            "kind": entry.kind.value,
            "out_dir": str(entry.out_dir),
            "platform": entry.platform.value,
        }
        if isinstance(entry, BundleEntry):
            assert entry_inputs is not None
            item["inputs"] = {name: str(path) for name, path in entry_inputs.items()}
            item["formats"] = [plan.to_mapping() for plan in entry.format_plans()]
            item["external"] = _describe_external(
                resolve_external_config(manifest, external=entry.external, no_external=entry.no_external)
            )
        else:
            item["input"] = str(entry.input)
        described.append(item)
    return described


__all__ = ["BuildResult", "build", "describe_build", "read_manifest", "run_on_success"]
