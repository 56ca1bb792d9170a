"""Replace installed programs with launchers that enter the wrapper env."""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from floxbuild.builders.validate import BIN_DIRS, is_executable_file
from floxbuild.errors import WrapError
from floxbuild.models import WrappedProgram


@dataclass(frozen=True, slots=True)
class ShellWrapper:
    """A launcher script in the shape ``makeShellWrapper`` produces.

    ``inherit_argv0`` execs the target with the launcher's own ``$0``.
    ``set_env`` entries are exported verbatim, ``run`` lines are inserted as
    written, and ``flags`` are passed before the caller's arguments.
    """

    shell: str
    executable: str
    set_env: Mapping[str, str] = field(default_factory=dict)
    run: Sequence[str] = ()
    flags: Sequence[str] = ()
    inherit_argv0: bool = True

    def render(self) -> str:
        lines = [f"#! {self.shell} -e"]
        for name, value in self.set_env.items():
            lines.append(f"export {name}={shlex.quote(value)}")
        lines.extend(self.run)
        argv0 = 'exec -a "$0" ' if self.inherit_argv0 else "exec "
        argv = " ".join(shlex.quote(arg) for arg in (self.executable, *self.flags))
        lines.append(f'{argv0}{argv} "$@"')
        return "\n".join(lines) + "\n"


def hidden_name(program: Path) -> Path:
    return program.parent / f".{program.name}-wrapped"


def activation_wrapper(
    *,
    hidden: Path,
    wrapper_env: Path,
    out: Path,
    shell: str,
    runtime_dir: str,
) -> ShellWrapper:
    return ShellWrapper(
        shell=shell,
        executable=str(wrapper_env / "activate"),
        set_env={
            "FLOX_ENV": str(wrapper_env),
            "FLOX_MANIFEST_BUILD_OUT": str(out),
            # TODO: drop once the activate script derives its own runtime dir.
            "FLOX_RUNTIME_DIR": runtime_dir,
        },
        run=('export FLOX_SET_ARG0="$0"',),
        flags=("--turbo", "--", str(hidden)),
    )


def wrap_programs(
    out: Path,
    *,
    wrapper_env: Path,
    shell: str,
    runtime_dir: str,
) -> list[WrappedProgram]:
    """Wrap every top-level program under ``bin``/``sbin`` of *out*.

    Symlinks are left untouched and dot-entries (including earlier hidden
    originals) are skipped. Anything else must be an executable file.
    """
    wrapped: list[WrappedProgram] = []
    for dirname in BIN_DIRS:
        directory = out / dirname
        if directory.is_symlink() or not directory.is_dir():
            continue
        for program in sorted(directory.iterdir()):
            if program.name.startswith(".") or program.is_symlink():
                continue
            if not is_executable_file(program):
                raise WrapError(
                    f"Cannot wrap '{program}' because it is not an executable file.",
                    hint="Only executable files may be installed directly under bin/ or sbin/.",
                    context={"operation": "wrap_programs", "path": str(program)},
                )
            hidden = hidden_name(program)
            os.rename(program, hidden)
            wrapper = activation_wrapper(
                hidden=hidden,
                wrapper_env=wrapper_env,
                out=out,
                shell=shell,
                runtime_dir=runtime_dir,
            )
            program.write_text(wrapper.render(), encoding="utf-8")
            program.chmod(0o755)
            wrapped.append(WrappedProgram(program=program, hidden=hidden))
    return wrapped
