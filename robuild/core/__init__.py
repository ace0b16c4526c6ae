"""Shared core utilities for configuration, console output, hashing and commands."""

from .command_runner import CommandError, RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import (
    ConfigLoader,
    FILE_LOADERS,
    find_config_file,
    load_config_file,
    load_manifest,
    normalize_keys,
)
from .console import BuildConsole, Console
from .hashing import add_hash, content_hash, has_hash, rename_with_hash, splice_hash

__all__ = [
    "BuildConsole",
    "CommandError",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "Console",
    "ConfigLoader",
    "FILE_LOADERS",
    "find_config_file",
    "load_config_file",
    "load_manifest",
    "normalize_keys",
    "add_hash",
    "content_hash",
    "has_hash",
    "rename_with_hash",
    "splice_hash",
]
