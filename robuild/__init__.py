"""Build orchestrator that drives a bundling engine over declarative entries."""

from .build import BuildResult, build, describe_build
from .config import BuildConfig, BuildContext, BuildHooks, BundleEntry, TransformEntry
from .engine import (
    Chunk,
    EngineConfig,
    OutputConfig,
    RecordingEngine,
    TransformResult,
    WriteResult,
)
from .errors import (
    BuildFailedError,
    ConfigurationError,
    EngineError,
    RobuildError,
    TransformError,
)
from .formats import FormatPlan, OutputFormat, Platform, plan_format

__all__ = [
    "BuildConfig",
    "BuildContext",
    "BuildFailedError",
    "BuildHooks",
    "BuildResult",
    "BundleEntry",
    "Chunk",
    "ConfigurationError",
    "EngineConfig",
    "EngineError",
    "FormatPlan",
    "OutputConfig",
    "OutputFormat",
    "Platform",
    "RecordingEngine",
    "RobuildError",
    "TransformEntry",
    "TransformError",
    "TransformResult",
    "WriteResult",
    "build",
    "describe_build",
    "plan_format",
]
