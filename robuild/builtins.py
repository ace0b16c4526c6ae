"""Platform builtin module names and ``node:`` protocol rewriting."""
from __future__ import annotations

from typing import Callable, List
import re


NODE_PROTOCOL = "node:"

NODE_BUILTIN_MODULES: frozenset[str] = frozenset(
    {
        "assert",
        "assert/strict",
        "async_hooks",
        "buffer",
        "child_process",
        "cluster",
        "console",
        "constants",
        "crypto",
        "dgram",
        "diagnostics_channel",
        "dns",
        "dns/promises",
        "domain",
        "events",
        "fs",
        "fs/promises",
        "http",
        "http2",
        "https",
        "inspector",
        "module",
        "net",
        "os",
        "path",
        "path/posix",
        "path/win32",
        "perf_hooks",
        "process",
        "punycode",
        "querystring",
        "readline",
        "readline/promises",
        "repl",
        "stream",
        "stream/consumers",
        "stream/promises",
        "stream/web",
        "string_decoder",
        "sys",
        "timers",
        "timers/promises",
        "tls",
        "trace_events",
        "tty",
        "url",
        "util",
        "util/types",
        "v8",
        "vm",
        "wasi",
        "worker_threads",
        "zlib",
    }
)

PLATFORM_LABEL = "[platform]"

# Module specifiers of static imports, re-exports, dynamic imports and require calls.
_SPECIFIER_PATTERN = re.compile(
    r"""(?P<lead>\bfrom\s*|\bimport\s*\(\s*|\bimport\s+|\brequire\s*\(\s*)(?P<quote>["'])(?P<id>[^"'\n]+)(?P=quote)"""
)


def is_builtin(module_id: str) -> bool:
    if module_id.startswith(NODE_PROTOCOL):
        return True
    return module_id in NODE_BUILTIN_MODULES


def builtin_module_names() -> List[str]:
    """Every builtin, bare and ``node:``-prefixed, in a stable order."""

    bare = sorted(NODE_BUILTIN_MODULES)
    return [*bare, *(f"{NODE_PROTOCOL}{name}" for name in bare)]


def add_node_protocol(module_id: str) -> str:
    if module_id.startswith(NODE_PROTOCOL):
        return module_id
    if module_id in NODE_BUILTIN_MODULES:
        return f"{NODE_PROTOCOL}{module_id}"
    return module_id


def strip_node_protocol(module_id: str) -> str:
    if module_id.startswith(NODE_PROTOCOL):
        return module_id[len(NODE_PROTOCOL):]
    return module_id


def transform_node_protocol(code: str, mode: bool | str) -> str:
    """Add (``True``) or remove (``"strip"``) the ``node:`` prefix of builtin imports."""

    if not mode:
        return code

    rewrite: Callable[[str], str]
    if mode == "strip":
        rewrite = strip_node_protocol
    elif mode is True:
        rewrite = add_node_protocol
    else:
        raise ValueError(f"Unsupported node protocol mode: {mode!r}")

    def replace(match: re.Match[str]) -> str:
        module_id = match.group("id")
        if not is_builtin(module_id):
            return match.group(0)
        quote = match.group("quote")
        return f"{match.group('lead')}{quote}{rewrite(module_id)}{quote}"

    return _SPECIFIER_PATTERN.sub(replace, code)


__all__ = [
    "NODE_BUILTIN_MODULES",
    "NODE_PROTOCOL",
    "PLATFORM_LABEL",
    "add_node_protocol",
    "builtin_module_names",
    "is_builtin",
    "strip_node_protocol",
    "transform_node_protocol",
]
