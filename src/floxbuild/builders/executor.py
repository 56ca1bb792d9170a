"""Run a build plan: produce, validate, patch, wrap and cache the output."""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from floxbuild.builders.base import BuildPlan, CopyPlan, ScriptPlan
from floxbuild.builders.install_prefix import copy_install_prefix
from floxbuild.builders.script import run_build_script
from floxbuild.builders.shebangs import ShebangPatcher
from floxbuild.builders.signing import sign_outputs
from floxbuild.builders.validate import (
    BIN_DIRS,
    ensure_output_exists,
    executables_in_bin,
    no_executables_lines,
    stray_executables,
    warn_missing_executables,
)
from floxbuild.builders.wrappers import wrap_programs
from floxbuild.cache.archive import extract_source, md5_checksums, merge_cache, write_cache
from floxbuild.config import BuilderConfig
from floxbuild.errors import BuildScriptError, PreconditionError
from floxbuild.models import FAILURE_MARKER, BuildResult, BuildStatus
from floxbuild.observability import StructuredLogger


@dataclass(slots=True)
class BuildExecutor:
    """Execute :class:`CopyPlan` and :class:`ScriptPlan` instances.

    The pipeline is strictly linear. The only absorbed failure is a failing
    build script when a cache output was requested: the output is replaced by
    a marker, post-build checks are skipped, and the cache is still written.
    """

    config: BuilderConfig = field(default_factory=BuilderConfig)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    base_env: Mapping[str, str] | None = None

    def execute(self, plan: BuildPlan) -> BuildResult:
        if isinstance(plan, CopyPlan):
            status = self._copy(plan)
            cache_out = None
        else:
            status = self._script(plan)
            cache_out = plan.cache_out

        result = BuildResult(
            strategy=plan.strategy,
            status=status,
            out=plan.paths.out,
            build_cache_out=cache_out,
        )
        if status is BuildStatus.SUCCEEDED:
            self._finish_output(plan, result)

        if isinstance(plan, ScriptPlan) and plan.cache_out is not None:
            members = write_cache(plan.work_dir, plan.cache_out)
            self._log(
                plan,
                phase="cache",
                message=f"Wrote build cache with {len(members)} files to {plan.cache_out}",
                extra={"files": len(members)},
            )
        return result

    # ------------------------------------------------------------------
    # Producing the output
    # ------------------------------------------------------------------

    def _copy(self, plan: CopyPlan) -> BuildStatus:
        out = plan.paths.out
        copy_install_prefix(plan.install_prefix, out, package=plan.request.name)
        self._log(plan, phase="copy", message=f"Copied {plan.install_prefix} to {out}")
        for path in sign_outputs(out, codesign_bin=self.config.codesign_bin):
            self._log(plan, phase="sign", message=f"Signed {path}")
        return BuildStatus.SUCCEEDED

    def _script(self, plan: ScriptPlan) -> BuildStatus:
        inputs = [p for p in (plan.src_tarball, plan.build_script, plan.prior_cache) if p]
        self._log(plan, phase="checksums", message="---")
        self._log(plan, phase="checksums", message="Input checksums:")
        for line in md5_checksums(p for p in inputs if p.exists()):
            self._log(plan, phase="checksums", message=line)
        self._log(plan, phase="checksums", message="---")

        # Work below tmp_dir so scratch files never end up in the cache.
        try:
            plan.work_dir.mkdir(parents=True)
        except FileExistsError as exc:
            raise PreconditionError(
                "The build working directory already exists.",
                hint="Use a fresh temporary directory for every build.",
                context={"operation": "execute", "work_dir": str(plan.work_dir)},
            ) from exc

        if plan.src_tarball is not None:
            extract_source(plan.src_tarball, plan.work_dir)
        if plan.prior_cache is not None:
            skipped = merge_cache(plan.prior_cache, plan.work_dir)
            if skipped:
                self._log(
                    plan,
                    phase="cache",
                    message=f"Kept {len(skipped)} source files over their cached copies",
                    level="debug",
                    extra={"skipped": skipped},
                )

        returncode = run_build_script(plan, base_env=self.base_env)
        if returncode == 0:
            return BuildStatus.SUCCEEDED

        if plan.cache_out is None:
            raise BuildScriptError(
                "Build script failed.",
                hint="Check the build script output above for details.",
                context={
                    "operation": "execute",
                    "package": plan.request.name,
                    "returncode": str(returncode),
                },
            )

        out = plan.paths.out
        if out.is_dir() and not out.is_symlink():
            shutil.rmtree(out)
        elif out.exists() or out.is_symlink():
            out.unlink()
        out.write_text(FAILURE_MARKER + "\n", encoding="utf-8")
        self._log(
            plan,
            phase="build",
            message=FAILURE_MARKER,
            level="error",
            extra={"returncode": returncode},
        )
        return BuildStatus.FAILED_CACHE_PRESERVED

    # ------------------------------------------------------------------
    # Post-build checks, shebangs and launchers
    # ------------------------------------------------------------------

    def _finish_output(self, plan: BuildPlan, result: BuildResult) -> None:
        out = plan.paths.out
        ensure_output_exists(out, package=plan.request.name)

        if not executables_in_bin(out):
            result.stray_executables = stray_executables(out)
            lines = no_executables_lines(result.stray_executables)
            for line in lines:
                self._log(plan, phase="validate", message=line, level="warning")
            result.warnings.extend(lines)
            warn_missing_executables(plan.request.name)

        wrapper_env = plan.request.build_wrapper_env
        patcher = ShebangPatcher.preferring(wrapper_env / "bin")
        for dirname in BIN_DIRS:
            patched, unresolved = patcher.patch_tree(out / dirname)
            for patch in patched:
                self._log(
                    plan,
                    phase="shebangs",
                    message=f"{patch.path}: interpreter directive changed from "
                    f'"{patch.old}" to "{patch.new}"',
                )
            for miss in unresolved:
                self._log(
                    plan,
                    phase="shebangs",
                    message=f"{miss.path}: unable to resolve interpreter \"{miss.interpreter}\"",
                    level="warning",
                )

        result.wrapped = wrap_programs(
            out,
            wrapper_env=wrapper_env,
            shell=self.config.runtime_shell,
            runtime_dir=self.config.wrapped_runtime_dir,
        )
        for program in result.wrapped:
            self._log(plan, phase="wrap", message=f"Wrapped {program.program}", level="debug")

    def _log(
        self,
        plan: BuildPlan,
        *,
        phase: str,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.logger.log(
            operation=str(plan.strategy),
            package=plan.request.name,
            phase=phase,
            message=message,
            level=level,
            extra=extra,
        )
