"""Run post-build shell commands, or record them during a dry run."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence
import shlex
import subprocess


Command = str | Sequence[str]


def split_command(command: Command) -> List[str]:
    """A string is split with shell quoting rules; a sequence is used as given."""

    parts = shlex.split(command) if isinstance(command, str) else [str(part) for part in command]
    if not parts:
        raise ValueError("Empty command")
    return parts


@dataclass(slots=True)
class CommandResult:
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandError(RuntimeError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, result: CommandResult):
        message = f"Command failed with exit code {result.returncode}: {shlex.join(result.command)}"
        if result.stderr.strip():
            message = f"{message}\n{result.stderr.strip()}"
        super().__init__(message)
        self.result = result


class CommandRunner:
    def run(self, command: Command, *, cwd: Path | None = None, note: str | None = None) -> CommandResult:
        raise NotImplementedError


class SubprocessCommandRunner(CommandRunner):
    """Runs commands with :mod:`subprocess`, capturing their output."""

    def run(self, command: Command, *, cwd: Path | None = None, note: str | None = None) -> CommandResult:
        argv = split_command(command)
        try:
            process = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise CommandError(CommandResult(command=argv, returncode=127, stderr=str(exc))) from exc
        result = CommandResult(
            command=argv,
            returncode=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
        )
        if result.returncode != 0:
            raise CommandError(result)
        return result


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None = None
    note: str | None = None


@dataclass
class RecordingCommandRunner(CommandRunner):
    """Records commands instead of executing them."""

    commands: List[RecordedCommand] = field(default_factory=list)

    def run(self, command: Command, *, cwd: Path | None = None, note: str | None = None) -> CommandResult:
        argv = split_command(command)
        self.commands.append(RecordedCommand(command=argv, cwd=str(cwd) if cwd else None, note=note))
        return CommandResult(command=argv, returncode=0)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        for record in self.commands:
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            cwd = record.cwd or (str(workspace) if workspace else None)
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(shlex.join(record.command))
            yield " ".join(parts)


__all__ = [
    "Command",
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "split_command",
]
