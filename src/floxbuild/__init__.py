"""Public package entrypoint for the flox package builder."""

from .activation import SavedVariables, ShellSourcer, render_login_fragment, restore_login
from .builders import BuildExecutor, CopyPlan, ScriptPlan, build, plan_build
from .config import BuilderConfig
from .errors import (
    ArchiveError,
    BackendExecutionError,
    BuildScriptError,
    CleanError,
    FloxBuildError,
    MissingOutputError,
    PreconditionError,
    WrapError,
)
from .models import BuildPaths, BuildRequest, BuildResult, BuildStatus, BuildStrategy
from .observability import StructuredLogger

__all__ = [
    "ArchiveError",
    "BackendExecutionError",
    "BuildExecutor",
    "BuildPaths",
    "BuildRequest",
    "BuildResult",
    "BuildScriptError",
    "BuildStatus",
    "BuildStrategy",
    "BuilderConfig",
    "CleanError",
    "CopyPlan",
    "FloxBuildError",
    "MissingOutputError",
    "PreconditionError",
    "SavedVariables",
    "ScriptPlan",
    "ShellSourcer",
    "StructuredLogger",
    "WrapError",
    "build",
    "plan_build",
    "render_login_fragment",
    "restore_login",
]
