"""Typed build plans and the executor interface."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from floxbuild.models import BuildPaths, BuildRequest, BuildResult, BuildStrategy


@dataclass(frozen=True, slots=True)
class CopyPlan:
    """Copy a pre-installed prefix into the output, rewriting references."""

    request: BuildRequest
    paths: BuildPaths
    install_prefix: Path

    @property
    def strategy(self) -> BuildStrategy:
        return BuildStrategy.COPY


@dataclass(frozen=True, slots=True)
class ScriptPlan:
    """Run a build script inside the layered activations."""

    request: BuildRequest
    paths: BuildPaths
    build_script: Path
    src_tarball: Path | None = None
    prior_cache: Path | None = None
    cache_out: Path | None = None

    @property
    def strategy(self) -> BuildStrategy:
        if self.cache_out is not None:
            return BuildStrategy.SCRIPT_WITH_CACHE
        return BuildStrategy.SCRIPT

    @property
    def work_dir(self) -> Path:
        return self.paths.tmp_dir / self.request.name


BuildPlan = CopyPlan | ScriptPlan


class Executor(Protocol):
    def execute(self, plan: BuildPlan) -> BuildResult:
        """Run *plan* to completion and return the build outcome."""
