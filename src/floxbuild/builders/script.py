"""Script mode: run a user build script inside layered activations."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from pathlib import Path

from floxbuild.builders.base import ScriptPlan
from floxbuild.errors import BackendExecutionError


def activation_command(
    *,
    flox_env: Path,
    build_wrapper_env: Path,
    build_script: Path,
) -> tuple[str, ...]:
    """Nest the wrapper env inside the develop env around ``bash -e``.

    The build wrapper env is the inner activation, so its tools and libraries
    win over the develop env's on ``PATH``.
    """
    return (
        str(flox_env / "activate"),
        "--mode",
        "run",
        "--turbo",
        "--",
        str(build_wrapper_env / "activate"),
        "--env",
        str(build_wrapper_env),
        "--turbo",
        "--",
        "bash",
        "-e",
        str(build_script),
    )


def build_environment(plan: ScriptPlan, base: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    dep_bins = [str(dep / "bin") for dep in plan.request.build_deps if (dep / "bin").is_dir()]
    if dep_bins:
        env["PATH"] = os.pathsep.join([*dep_bins, env.get("PATH", "")]).rstrip(os.pathsep)
    env["out"] = str(plan.paths.out)
    if plan.cache_out is not None:
        env["buildCache"] = str(plan.cache_out)
    env["FLOX_SRC_DIR"] = str(plan.work_dir)
    # activations keep their state under the runtime dir
    env["FLOX_RUNTIME_DIR"] = str(plan.paths.tmp_dir)
    return env


def run_build_script(plan: ScriptPlan, *, base_env: Mapping[str, str] | None = None) -> int:
    """Run the plan's build script to completion and return its exit code.

    The script's stdout and stderr are inherited, never captured.
    """
    command = activation_command(
        flox_env=plan.request.flox_env,
        build_wrapper_env=plan.request.build_wrapper_env,
        build_script=plan.build_script,
    )
    try:
        result = subprocess.run(
            list(command),
            cwd=str(plan.work_dir),
            env=build_environment(plan, base_env),
            check=False,
        )
    except OSError as exc:
        raise BackendExecutionError(
            "Failed to start the build script.",
            hint="Check that both environments provide an executable activate script.",
            context={
                "operation": "run_build_script",
                "package": plan.request.name,
                "command": " ".join(command),
                "error": str(exc),
            },
        ) from exc
    return result.returncode
