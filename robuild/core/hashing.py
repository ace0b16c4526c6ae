"""Content-hash filename helpers."""
from __future__ import annotations

from pathlib import Path
import hashlib
import re


HASH_LENGTH = 8

_HASH_PATTERN = re.compile(r"-[a-f0-9]{8}(?:\.[^./]*)?$")


def content_hash(content: str | bytes, length: int = HASH_LENGTH) -> str:
    """Return the first ``length`` hex characters of the sha256 of ``content``."""

    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()[:length]


def splice_hash(filename: str, digest: str, *, suffix: str | None = None) -> str:
    """Insert ``-digest`` before ``suffix`` (default: the final extension)."""

    if suffix and filename.endswith(suffix):
        return f"{filename[: -len(suffix)]}-{digest}{suffix}"

    dot = filename.rfind(".")
    slash = max(filename.rfind("/"), filename.rfind("\\"))
    if dot == -1 or dot < slash:
        return f"{filename}-{digest}"
    return f"{filename[:dot]}-{digest}{filename[dot:]}"


def add_hash(filename: str, content: str | bytes, length: int = HASH_LENGTH) -> str:
    """``name.ext`` -> ``name-<hash>.ext``; ``name`` -> ``name-<hash>``."""

    return splice_hash(filename, content_hash(content, length))


def has_hash(filename: str) -> bool:
    return _HASH_PATTERN.search(filename) is not None


def rename_with_hash(
    path: Path,
    content: str | bytes,
    *,
    declaration_extension: str | None = None,
    js_extension: str | None = None,
) -> Path:
    """Rename ``path`` to its hashed name and return the new path.

    A ``.map`` file next to ``path`` and the declaration sibling (same stem,
    ``declaration_extension``) are renamed with the same digest.
    """

    digest = content_hash(content)
    hashed = path.with_name(splice_hash(path.name, digest))
    path.rename(hashed)

    source_map = path.with_name(f"{path.name}.map")
    if source_map.exists():
        source_map.rename(hashed.with_name(f"{hashed.name}.map"))

    if declaration_extension:
        js_suffix = js_extension or path.suffix
        stem = path.name[: -len(js_suffix)] if js_suffix and path.name.endswith(js_suffix) else path.stem
        declaration = path.with_name(f"{stem}{declaration_extension}")
        if declaration.exists():
            declaration.rename(
                declaration.with_name(
                    splice_hash(declaration.name, digest, suffix=declaration_extension)
                )
            )

    return hashed


__all__ = [
    "HASH_LENGTH",
    "add_hash",
    "content_hash",
    "has_hash",
    "rename_with_hash",
    "splice_hash",
]
