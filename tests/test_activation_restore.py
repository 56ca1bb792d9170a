import shutil
from collections.abc import Mapping
from pathlib import Path

import pytest

from floxbuild.activation import (
    SAVED_VARIABLES,
    SavedVariables,
    ShellSourcer,
    dotfile_overrides,
    login_steps,
    render_login_fragment,
    restore_login,
)
from floxbuild.errors import BackendExecutionError

SYSTEM_LOGIN = Path("/etc/zlogin")


class ClobberingSourcer:
    """Pretends every login file starts a nested activation."""

    def __init__(self, clobber: Mapping[str, str]) -> None:
        self.clobber = dict(clobber)
        self.calls: list[tuple[Path, dict[str, str]]] = []

    def source(self, path: Path, env: Mapping[str, str]) -> dict[str, str]:
        self.calls.append((path, dict(env)))
        return {**env, **self.clobber, "SOURCED": str(path)}


def test_restore_exports_every_guarded_name() -> None:
    env = {"FLOX_ENV": "/outer", "HOME": "/home/me"}
    snapshot = SavedVariables.capture(env)

    env.update({"FLOX_ENV": "/inner", "ZDOTDIR": "/inner/zdotdir"})
    snapshot.restore(env)

    assert env["FLOX_ENV"] == "/outer"
    assert env["ZDOTDIR"] == ""
    assert env["HOME"] == "/home/me"
    assert all(name in env for name in SAVED_VARIABLES)
    assert tuple(snapshot.as_dict()) == SAVED_VARIABLES


def test_overrides_use_original_dotfile_dir() -> None:
    assert dotfile_overrides({"FLOX_ORIG_ZDOTDIR": "/home/me/.config/zsh"}) == {
        "ZDOTDIR": "/home/me/.config/zsh",
        "FLOX_ORIG_ZDOTDIR": "",
    }
    assert dotfile_overrides({"FLOX_ORIG_ZDOTDIR": ""}) == {"ZDOTDIR": ""}
    assert dotfile_overrides({}) == {"ZDOTDIR": ""}


def test_login_steps_follow_system_user_then_init_order() -> None:
    env = {"FLOX_ZSH_INIT_SCRIPT": "/env/activate.d/zsh", "HOME": "/home/me"}

    steps = login_steps(env, system_login=SYSTEM_LOGIN, exists=lambda path: True)

    assert [step.path for step in steps] == [
        SYSTEM_LOGIN,
        Path("/home/me/.zlogin"),
        Path("/env/activate.d/zsh"),
    ]
    assert [step.restore for step in steps] == [True, True, False]
    assert steps[2].overrides == {}


def test_user_login_prefers_original_dotfile_dir() -> None:
    env = {"FLOX_ORIG_ZDOTDIR": "/dots", "HOME": "/home/me"}

    steps = login_steps(env, system_login=SYSTEM_LOGIN, exists=lambda path: path != SYSTEM_LOGIN)

    assert [step.path for step in steps] == [Path("/dots/.zlogin")]
    assert steps[0].overrides == {"ZDOTDIR": "/dots", "FLOX_ORIG_ZDOTDIR": ""}


def test_missing_login_files_are_skipped() -> None:
    assert login_steps({"HOME": "/home/me"}, exists=lambda path: False) == []


def test_guarded_variables_survive_nested_activation() -> None:
    env = {
        "FLOX_ENV": "/outer",
        "FLOX_ORIG_ZDOTDIR": "/dots",
        "ZDOTDIR": "/outer/zdotdir",
        "_FLOX_RESTORE_PATH": "/usr/bin",
        "HOME": "/home/me",
    }
    sourcer = ClobberingSourcer({"FLOX_ENV": "/nested", "ZDOTDIR": "/nested", "EXTRA": "1"})

    final = restore_login(env, sourcer, system_login=SYSTEM_LOGIN, exists=lambda path: True)

    assert [path for path, _ in sourcer.calls] == [SYSTEM_LOGIN, Path("/dots/.zlogin")]
    assert sourcer.calls[0][1]["ZDOTDIR"] == "/dots"
    assert sourcer.calls[0][1]["FLOX_ORIG_ZDOTDIR"] == ""
    assert sourcer.calls[1][1]["FLOX_ENV"] == "/outer"
    assert sourcer.calls[1][1]["FLOX_ORIG_ZDOTDIR"] == ""
    assert final["FLOX_ENV"] == "/outer"
    assert final["ZDOTDIR"] == "/outer/zdotdir"
    assert final["FLOX_ORIG_ZDOTDIR"] == "/dots"
    assert final["EXTRA"] == "1"


def test_init_script_runs_last_without_restore() -> None:
    env = {"FLOX_ENV": "/outer", "FLOX_ZSH_INIT_SCRIPT": "/env/init.zsh", "HOME": "/home/me"}
    sourcer = ClobberingSourcer({"FLOX_ENV": "/changed-by-init"})

    final = restore_login(
        env,
        sourcer,
        system_login=SYSTEM_LOGIN,
        exists=lambda path: path == SYSTEM_LOGIN,
    )

    assert [path for path, _ in sourcer.calls] == [SYSTEM_LOGIN, Path("/env/init.zsh")]
    assert final["FLOX_ENV"] == "/changed-by-init"


def test_sourcer_errors_propagate() -> None:
    class FailingSourcer:
        def source(self, path: Path, env: Mapping[str, str]) -> dict[str, str]:
            raise BackendExecutionError("boom", context={"path": str(path)})

    with pytest.raises(BackendExecutionError):
        restore_login({"HOME": "/home/me"}, FailingSourcer(), exists=lambda path: True)


def test_login_fragment_saves_and_restores_every_name() -> None:
    fragment = render_login_fragment(system_login=Path("/etc/zsh/zlogin"))

    for name in SAVED_VARIABLES:
        assert f'_save_{name}="${name}"' in fragment
        assert f'  export {name}="$_save_{name}"' in fragment
    assert "_flox_source_login /etc/zsh/zlogin" in fragment
    assert '_flox_zlogin="${FLOX_ORIG_ZDOTDIR:-$HOME}/.zlogin"' in fragment
    assert 'source "$FLOX_ZSH_INIT_SCRIPT"' in fragment
    assert fragment.index("/etc/zsh/zlogin") < fragment.index("_flox_zlogin=")
    assert fragment.index("_flox_zlogin=") < fragment.index('source "$FLOX_ZSH_INIT_SCRIPT"')


def test_shell_sourcer_reads_back_environment(tmp_path: Path) -> None:
    sh = shutil.which("sh")
    if sh is None:
        pytest.skip("sh is required")
    login = tmp_path / "login"
    login.write_text("export FLOX_ENV=/nested\necho sourced\n", encoding="utf-8")

    env = ShellSourcer(shell=sh).source(login, {"PATH": "/usr/bin:/bin", "KEEP": "yes"})

    assert env["FLOX_ENV"] == "/nested"
    assert env["KEEP"] == "yes"


def test_shell_sourcer_failure_raises(tmp_path: Path) -> None:
    sh = shutil.which("sh")
    if sh is None:
        pytest.skip("sh is required")
    login = tmp_path / "login"
    login.write_text("exit 4\n", encoding="utf-8")

    with pytest.raises(BackendExecutionError) as excinfo:
        ShellSourcer(shell=sh).source(login, {"PATH": "/usr/bin:/bin"})

    assert excinfo.value.context["returncode"] == "4"


def test_shell_sourcer_ignores_status_of_last_command(tmp_path: Path) -> None:
    sh = shutil.which("sh")
    if sh is None:
        pytest.skip("sh is required")
    login = tmp_path / "login"
    login.write_text('export FOO=bar\n[ -n "$UNSET_THING" ] && echo hi\n', encoding="utf-8")

    env = ShellSourcer(shell=sh).source(login, {"PATH": "/usr/bin:/bin"})

    assert env["FOO"] == "bar"
    assert "UNSET_THING" not in env
