"""Interfaces of the external collaborators and a dry-run engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Protocol, Sequence, runtime_checkable
import inspect

from .formats import FormatPlan


_DECLARATION_SUFFIXES = (".d.ts", ".d.mts", ".d.cts")


async def maybe_await(value: Any) -> Any:
    """Await ``value`` when a collaborator or hook returned an awaitable."""

    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(slots=True)
class Chunk:
    """One file produced by the engine's write step."""

    file_name: str
    is_entry: bool = False
    imports: Sequence[str] = ()
    exports: Sequence[str] = ()
    code: str = ""
    map: str | None = None

    @property
    def is_declaration(self) -> bool:
        return self.file_name.endswith(_DECLARATION_SUFFIXES)


@dataclass(slots=True)
class WriteResult:
    chunks: List[Chunk] = field(default_factory=list)


@dataclass(slots=True)
class ChunkTransform:
    """Post-processing step the engine applies to every emitted chunk, in order."""

    name: str
    apply: Callable[[str], str]

    def __call__(self, code: str) -> str:
        return self.apply(code)


@dataclass(slots=True)
class EngineConfig:
    """Input options of one engine invocation; hooks may mutate it in place."""

    cwd: Path
    input: Dict[str, Path]
    format: str
    platform: str
    target: str
    external: Any = None
    alias: Dict[str, str] = field(default_factory=dict)
    define: Dict[str, str] = field(default_factory=dict)
    treeshake: Any = None
    declarations: Any = None
    plugins: List[Any] = field(default_factory=list)
    chunk_transforms: List[ChunkTransform] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class OutputConfig:
    """Output options of one engine write; hooks may mutate it in place."""

    dir: Path
    format: str
    entry_file_names: str
    chunk_file_names: str
    plan: FormatPlan
    minify: Any = False
    sourcemap: Any = False
    name: str | None = None
    extra: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class BuildHandle(Protocol):
    def write(self, output: OutputConfig) -> WriteResult:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class BundleEngine(Protocol):
    def build(self, config: EngineConfig) -> BuildHandle:
        ...


@dataclass(slots=True)
class ImportRecord:
    """A module specifier found in transformed code.

    ``start``/``end`` delimit the specifier text (without quotes) in the code
    returned by the transform service.
    """

    specifier: str
    start: int
    end: int


@dataclass(slots=True)
class TransformOptions:
    target: str = "es2022"
    sourcemap: bool = False
    declaration: bool = True
    lang: str = "ts"
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TransformResult:
    code: str
    map: str | None = None
    declaration: str | None = None
    errors: Sequence[Any] = ()
    imports: Sequence[ImportRecord] = ()


@dataclass(slots=True)
class MinifyResult:
    code: str
    map: str | None = None


@runtime_checkable
class TransformService(Protocol):
    def transform(self, path: Path, source: str, options: TransformOptions) -> TransformResult:
        ...


@runtime_checkable
class MinifyService(Protocol):
    def minify(self, path: Path, code: str, options: Mapping[str, Any]) -> MinifyResult:
        ...


@runtime_checkable
class ModuleResolver(Protocol):
    def resolve(self, specifier: str, base_dir: Path) -> Path:
        ...


class RecordingHandle:
    """Build handle returned by :class:`RecordingEngine`; writes nothing."""

    def __init__(self, engine: "RecordingEngine", config: EngineConfig) -> None:
        self._engine = engine
        self._config = config
        self.closed = False

    def write(self, output: OutputConfig) -> WriteResult:
        self._engine.records.append(
            {
                "action": "write",
                "format": output.format,
                "dir": str(output.dir),
                "entry_file_names": output.entry_file_names,
                "inputs": {name: str(path) for name, path in self._config.input.items()},
            }
        )
        return WriteResult()

    def close(self) -> None:
        self.closed = True


class RecordingEngine:
    """Engine that records invocations instead of bundling anything."""

    def __init__(self) -> None:
        self.records: List[dict] = []

    def build(self, config: EngineConfig) -> RecordingHandle:
        self.records.append(
            {
                "action": "build",
                "format": config.format,
                "platform": config.platform,
                "target": config.target,
                "inputs": {name: str(path) for name, path in config.input.items()},
            }
        )
        return RecordingHandle(self, config)

    def iter_records(self) -> Iterable[dict]:
        return iter(self.records)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        for record in self.records:
            parts: List[str] = ["[dry-run]", record["action"], f"format={record['format']}"]
            if record["action"] == "build":
                parts.append(f"platform={record['platform']}")
                parts.append(f"target={record['target']}")
            else:
                out_dir = record["dir"]
                if workspace is not None:
                    try:
                        out_dir = str(Path(out_dir).relative_to(workspace))
                    except ValueError:
                        pass
                parts.append(f"(dir={out_dir})")
            inputs = ", ".join(f"{name}={path}" for name, path in record["inputs"].items())
            parts.append(inputs)
            yield " ".join(parts)


__all__ = [
    "BuildHandle",
    "BundleEngine",
    "Chunk",
    "ChunkTransform",
    "EngineConfig",
    "ImportRecord",
    "MinifyResult",
    "MinifyService",
    "ModuleResolver",
    "OutputConfig",
    "RecordingEngine",
    "RecordingHandle",
    "TransformOptions",
    "TransformResult",
    "TransformService",
    "WriteResult",
    "maybe_await",
]
