"""Console output handler threaded through a single build."""
from __future__ import annotations

from typing import Protocol, TextIO, runtime_checkable
import sys


@runtime_checkable
class BuildConsole(Protocol):
    """Minimal console interface required by the build pipeline."""

    def info(self, message: str) -> None:
        ...

    def log(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def verbose(self, message: str) -> None:
        ...


class Console:
    """Simple console output handler with configurable log level.

    Levels: silent < error < warn < info < verbose
    Default: 'info'

    Warnings and errors are counted regardless of the level so a build can
    fail on warnings even when they are not printed.
    """

    LEVELS = {
        "silent": 0,
        "error": 1,
        "warn": 2,
        "info": 3,
        "verbose": 4,
    }

    def __init__(
        self,
        level: str = "info",
        *,
        stream: TextIO | None = None,
        error_stream: TextIO | None = None,
    ) -> None:
        if level not in self.LEVELS:
            allowed = ", ".join(self.LEVELS)
            raise ValueError(f"Unknown log level '{level}' (allowed: {allowed})")
        self.level_name = level
        self.level = self.LEVELS[level]
        self.warning_count = 0
        self.error_count = 0
        self._stream = stream
        self._error_stream = error_stream

    def _out(self) -> TextIO:
        return self._stream or sys.stdout

    def _err(self) -> TextIO:
        return self._error_stream or sys.stderr

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}", file=self._out())

    def log(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(message, file=self._out())

    def warn(self, message: str) -> None:
        self.warning_count += 1
        if self.level >= self.LEVELS["warn"]:
            print(f"[WARN] {message}", file=self._err())

    def error(self, message: str) -> None:
        self.error_count += 1
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=self._err())

    def verbose(self, message: str) -> None:
        if self.level >= self.LEVELS["verbose"]:
            print(f"[DEBUG] {message}", file=self._out())

    def reset_counts(self) -> None:
        self.warning_count = 0
        self.error_count = 0

    def should_fail_on_warnings(self, fail_on_warn: bool) -> bool:
        return fail_on_warn and self.warning_count > 0
