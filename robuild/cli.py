"""Command line interface for robuild."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Any, Iterable
import asyncio
import importlib
import json
import sys

import yaml

from .build import build, describe_build
from .config import BuildConfig
from .core.command_runner import RecordingCommandRunner, SubprocessCommandRunner
from .core.config_loader import find_config_file, load_config_file
from .core.console import Console
from .engine import RecordingEngine
from .errors import ConfigurationError, RobuildError


def _load_factory(spec: str, *, option: str) -> Any:
    """Import ``module:attribute`` and call it when it is callable."""

    module_name, sep, attribute = spec.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(f"{option} expects 'module:factory', got '{spec}'")
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import '{module_name}' for {option}: {exc}") from exc
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise ConfigurationError(f"'{module_name}' has no attribute '{attribute}' ({option})") from None
    return target() if callable(target) else target


def _load_config(args: Namespace) -> BuildConfig:
    workspace = Path(args.directory).expanduser().resolve()
    config_path = Path(args.config).expanduser() if args.config else find_config_file(workspace)
    data = load_config_file(config_path) if config_path is not None else {}
    config = BuildConfig.from_mapping(data, cwd=workspace)
    if args.log_level:
        config.log_level = args.log_level
    return config


def _emit_dry_run_output(recorder: RecordingEngine | RecordingCommandRunner, *, workspace: Path) -> None:
    for line in recorder.iter_formatted(workspace=workspace):
        print(line)


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="robuild", description="Bundle orchestrator for JavaScript/TypeScript packages")
    parser.add_argument("-C", "--directory", default=".", metavar="DIR", help="Package directory (default: current directory)")
    parser.add_argument("-c", "--config", metavar="FILE", help="Configuration file (default: build.config.{toml,json,yaml,yml})")
    parser.add_argument("--log-level", choices=list(Console.LEVELS), help="Console verbosity")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="Build every configured entry")
    build_parser.add_argument("--engine", metavar="MODULE:FACTORY", help="Bundling engine factory")
    build_parser.add_argument("--transformer", metavar="MODULE:FACTORY", help="Transform service factory")
    build_parser.add_argument("--minifier", metavar="MODULE:FACTORY", help="Minify service factory")
    build_parser.add_argument("-n", "--dry-run", action="store_true", help="Record engine invocations without building")
    build_parser.add_argument("--fail-on-warn", action="store_true", help="Fail the build when warnings were emitted")
    build_parser.add_argument("--on-success", metavar="COMMAND", help="Command to run in the package directory after a successful build")

    subparsers.add_parser("plan", help="Print the resolved entries, format plans and external rules as JSON")

    return parser.parse_args(list(argv))


def _handle_build(args: Namespace, config: BuildConfig) -> int:
    if not args.engine and not args.dry_run:
        raise ConfigurationError("--engine is required unless --dry-run is given")

    engine = RecordingEngine() if args.dry_run else _load_factory(args.engine, option="--engine")
    transformer = _load_factory(args.transformer, option="--transformer") if args.transformer else None
    minifier = _load_factory(args.minifier, option="--minifier") if args.minifier else None
    if args.fail_on_warn:
        config.fail_on_warn = True
    if args.on_success:
        config.on_success = args.on_success
    runner = RecordingCommandRunner() if args.dry_run else SubprocessCommandRunner()

    asyncio.run(
        build(
            config,
            engine=engine,
            transformer=transformer,
            minifier=minifier,
            console=Console(config.log_level),
            dry_run=args.dry_run,
            command_runner=runner,
        )
    )

    if isinstance(engine, RecordingEngine):
        _emit_dry_run_output(engine, workspace=config.cwd)
    if isinstance(runner, RecordingCommandRunner):
        _emit_dry_run_output(runner, workspace=config.cwd)
    return 0


def _handle_plan(config: BuildConfig) -> int:
    print(json.dumps(describe_build(config), indent=2))
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(argv if argv is not None else sys.argv[1:])
    try:
        try:
            config = _load_config(args)
        except ConfigurationError:
            raise
        except (ValueError, TypeError, yaml.YAMLError) as exc:
            raise ConfigurationError(str(exc)) from exc
        if args.command == "plan":
            return _handle_plan(config)
        return _handle_build(args, config)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2
    except RobuildError as exc:
        print(f"Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
