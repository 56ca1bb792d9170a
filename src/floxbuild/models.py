"""Core typed dataclasses for build requests, plans and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

FAILURE_MARKER = "flox build failed (caching build dir)"


class BuildStrategy(StrEnum):
    COPY = "copy"
    SCRIPT = "script"
    SCRIPT_WITH_CACHE = "script_with_cache"


class BuildStatus(StrEnum):
    """Outcome of a build that did not raise.

    ``FAILED_CACHE_PRESERVED`` exits zero like a success so the cache output
    is still harvested, but callers can tell the two apart.
    """

    SUCCEEDED = "succeeded"
    FAILED_CACHE_PRESERVED = "failed_cache_preserved"


@dataclass(frozen=True, slots=True)
class BuildRequest:
    name: str
    flox_env: Path
    build_wrapper_env: Path
    install_prefix: Path | None = None
    src_tarball: Path | None = None
    build_deps: tuple[Path, ...] = ()
    build_script: Path | None = None
    build_cache: Path | None = None


@dataclass(frozen=True, slots=True)
class BuildPaths:
    """Where a single build writes.

    ``tmp_dir`` is the build root; the script runs in ``tmp_dir / name`` and
    activations use ``tmp_dir`` as their runtime dir.
    """

    out: Path
    tmp_dir: Path
    build_cache_out: Path | None = None


@dataclass(frozen=True, slots=True)
class WrappedProgram:
    program: Path
    hidden: Path


@dataclass(slots=True)
class BuildResult:
    strategy: BuildStrategy
    status: BuildStatus
    out: Path
    build_cache_out: Path | None = None
    wrapped: list[WrappedProgram] = field(default_factory=list)
    stray_executables: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status is BuildStatus.SUCCEEDED
