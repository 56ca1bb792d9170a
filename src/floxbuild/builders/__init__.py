"""Build plans, the executor, and the steps they are assembled from."""

from __future__ import annotations

from floxbuild.builders.base import BuildPlan, CopyPlan, Executor, ScriptPlan
from floxbuild.builders.executor import BuildExecutor
from floxbuild.builders.plan import plan_build
from floxbuild.builders.validate import MissingExecutablesWarning
from floxbuild.config import BuilderConfig
from floxbuild.models import BuildPaths, BuildRequest, BuildResult
from floxbuild.observability import StructuredLogger


def build(
    request: BuildRequest,
    paths: BuildPaths,
    *,
    config: BuilderConfig | None = None,
    logger: StructuredLogger | None = None,
) -> BuildResult:
    """Plan and execute a single package build."""
    plan = plan_build(request, paths)
    executor = BuildExecutor(
        config=config or BuilderConfig(),
        logger=logger if logger is not None else StructuredLogger(),
    )
    return executor.execute(plan)


__all__ = [
    "BuildExecutor",
    "BuildPlan",
    "CopyPlan",
    "Executor",
    "MissingExecutablesWarning",
    "ScriptPlan",
    "build",
    "plan_build",
]
