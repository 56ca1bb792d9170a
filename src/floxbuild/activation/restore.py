"""Source login files without letting nested activations clobber our state.

A login file may itself start a nested activation, which rewrites the same
variables the outer activation depends on. The guarded names are captured
once on entry and written back after every login file is sourced.
"""

from __future__ import annotations

import os
import subprocess
import textwrap
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from floxbuild.config import DEFAULT_SYSTEM_LOGIN
from floxbuild.errors import BackendExecutionError

SAVED_VARIABLES = (
    "_flox_activate_tracelevel",
    "FLOX_ENV",
    "FLOX_ORIG_ZDOTDIR",
    "ZDOTDIR",
    "_FLOX_ACTIVATION_STATE_DIR",
    "FLOX_ZSH_INIT_SCRIPT",
    "_FLOX_RESTORE_PATH",
    "_FLOX_RESTORE_MANPATH",
    "_flox_activate_profile_only",
)

USER_LOGIN_NAME = ".zlogin"
INIT_SCRIPT_VARIABLE = "FLOX_ZSH_INIT_SCRIPT"


@dataclass(frozen=True, slots=True)
class SavedVariables:
    """Immutable snapshot of the guarded variables.

    Every name is restored by export, like the zsh fragment does. A name that
    was unset at capture time comes back as an empty string.
    """

    values: tuple[tuple[str, str], ...]

    @classmethod
    def capture(
        cls,
        env: Mapping[str, str],
        names: tuple[str, ...] = SAVED_VARIABLES,
    ) -> SavedVariables:
        return cls(values=tuple((name, env.get(name, "")) for name in names))

    def restore(self, env: MutableMapping[str, str]) -> None:
        for name, value in self.values:
            env[name] = value

    def as_dict(self) -> dict[str, str]:
        return dict(self.values)


@dataclass(frozen=True, slots=True)
class SourceStep:
    path: Path
    overrides: Mapping[str, str] = field(default_factory=dict)
    restore: bool = True


class Sourcer(Protocol):
    def source(self, path: Path, env: Mapping[str, str]) -> Mapping[str, str]:
        """Source *path* with *env* and return the resulting environment."""


@dataclass(slots=True)
class ShellSourcer:
    """Source a file in a real shell and read back its environment.

    The status of the last command in the file is ignored, as when zsh
    sources it. Only a file that makes the shell exit is an error.
    """

    shell: str = "zsh"

    def source(self, path: Path, env: Mapping[str, str]) -> dict[str, str]:
        command = [self.shell, "-c", '. "$1" 1>&2; env -0', "floxbuild-login", str(path)]
        result = subprocess.run(
            command,
            env=dict(env),
            stdout=subprocess.PIPE,
            check=False,
        )
        if result.returncode != 0:
            raise BackendExecutionError(
                "Sourcing login file failed.",
                hint="Fix the login file or remove it.",
                context={
                    "operation": "source",
                    "path": str(path),
                    "shell": self.shell,
                    "returncode": str(result.returncode),
                },
            )
        return _parse_env(result.stdout)


def dotfile_overrides(env: Mapping[str, str]) -> dict[str, str]:
    """Point ``ZDOTDIR`` at the pre-activation directory for one sourcing."""
    original = env.get("FLOX_ORIG_ZDOTDIR", "")
    if original:
        return {"ZDOTDIR": original, "FLOX_ORIG_ZDOTDIR": ""}
    return {"ZDOTDIR": ""}


def login_steps(
    env: Mapping[str, str],
    *,
    home: Path | None = None,
    system_login: Path = DEFAULT_SYSTEM_LOGIN,
    exists: Callable[[Path], bool] = Path.is_file,
) -> list[SourceStep]:
    steps: list[SourceStep] = []
    overrides = dotfile_overrides(env)

    if exists(system_login):
        steps.append(SourceStep(path=system_login, overrides=overrides))

    base = env.get("FLOX_ORIG_ZDOTDIR") or str(home or env.get("HOME") or Path.home())
    user_login = Path(base) / USER_LOGIN_NAME
    if exists(user_login):
        steps.append(SourceStep(path=user_login, overrides=overrides))

    init_script = env.get(INIT_SCRIPT_VARIABLE, "")
    if init_script:
        steps.append(SourceStep(path=Path(init_script), restore=False))
    return steps


def restore_login(
    env: Mapping[str, str],
    sourcer: Sourcer,
    *,
    home: Path | None = None,
    system_login: Path = DEFAULT_SYSTEM_LOGIN,
    exists: Callable[[Path], bool] = Path.is_file,
) -> dict[str, str]:
    """Run the login sequence and return the final environment.

    Errors raised by *sourcer* propagate unchanged.
    """
    current = dict(env)
    snapshot = SavedVariables.capture(current)
    for step in login_steps(current, home=home, system_login=system_login, exists=exists):
        current = dict(sourcer.source(step.path, {**current, **step.overrides}))
        if step.restore:
            snapshot.restore(current)
    return current


def render_login_fragment(
    *,
    system_login: Path = DEFAULT_SYSTEM_LOGIN,
    names: tuple[str, ...] = SAVED_VARIABLES,
) -> str:
    """Render the zsh login fragment for the same sequence as :func:`restore_login`."""
    saves = "\n".join(f'_save_{name}="${name}"' for name in names)
    restores = "\n".join(f'  export {name}="$_save_{name}"' for name in names)
    return textwrap.dedent("""\
        # Save guarded variables; sourcing a login file may start a nested
        # activation that changes them.
        {saves}

        _flox_restore_saved_vars() {{
        {restores}
        }}

        _flox_source_login() {{
          if [ -n "${{FLOX_ORIG_ZDOTDIR:-}}" ]
          then
            ZDOTDIR="$FLOX_ORIG_ZDOTDIR" FLOX_ORIG_ZDOTDIR= source "$1"
          else
            ZDOTDIR= source "$1"
          fi
          _flox_restore_saved_vars
        }}

        if [ -f {system_login} ]
        then
          _flox_source_login {system_login}
        fi

        _flox_zlogin="${{FLOX_ORIG_ZDOTDIR:-$HOME}}/{user_login}"
        if [ -f "$_flox_zlogin" ]
        then
          _flox_source_login "$_flox_zlogin"
        fi
        unset _flox_zlogin

        if [ -n "${init}" ]
        then
          source "${init}"
        fi
        """).format(
        saves=saves,
        restores=restores,
        system_login=system_login,
        user_login=USER_LOGIN_NAME,
        init=INIT_SCRIPT_VARIABLE,
    )


def _parse_env(raw: bytes) -> dict[str, str]:
    env: dict[str, str] = {}
    for entry in raw.split(b"\0"):
        if not entry or b"=" not in entry:
            continue
        name, _, value = entry.partition(b"=")
        env[os.fsdecode(name)] = os.fsdecode(value)
    return env
