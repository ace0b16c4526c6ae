"""Exception types raised by the build pipeline."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence


class RobuildError(RuntimeError):
    """Base class for build failures."""


class ConfigurationError(RobuildError, ValueError):
    """Raised when build entries or options are invalid."""


class ModuleResolutionError(ConfigurationError):
    """Raised when a module specifier cannot be resolved to a file."""

    def __init__(self, specifier: str, base_dir: Path):
        super().__init__(f"Cannot resolve '{specifier}' from {base_dir}")
        self.specifier = specifier
        self.base_dir = base_dir


class EngineError(RobuildError):
    """Raised when the bundling engine fails to build or write a format."""

    def __init__(self, message: str, *, entry: str, format: str):
        super().__init__(f"{message} (entry: {entry}, format: {format})")
        self.entry = entry
        self.format = format


class TransformError(RobuildError):
    """Raised when the transform service reports errors for a source file."""

    def __init__(self, path: Path, errors: Sequence[Any], *, dump_path: Path | None = None):
        message = f"Errors while transforming {path}"
        if dump_path is not None:
            message = f"{message}: (hint: check {dump_path.name})"
        details = "\n".join(f"  - {error}" for error in errors)
        if details:
            message = f"{message}\n{details}"
        super().__init__(message)
        self.path = path
        self.errors = list(errors)
        self.dump_path = dump_path


class BuildFailedError(RobuildError):
    """Raised after a build that emitted warnings when ``fail_on_warn`` is set."""


__all__ = [
    "BuildFailedError",
    "ConfigurationError",
    "EngineError",
    "ModuleResolutionError",
    "RobuildError",
    "TransformError",
]
