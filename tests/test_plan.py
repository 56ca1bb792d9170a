from pathlib import Path

import pytest

from floxbuild.builders import CopyPlan, ScriptPlan, plan_build
from floxbuild.errors import PreconditionError
from floxbuild.models import BuildPaths, BuildRequest, BuildStrategy


def test_no_build_script_selects_copy_mode(tmp_path: Path) -> None:
    plan = plan_build(_request(tmp_path, install_prefix=tmp_path / "prefix"), _paths(tmp_path))

    assert isinstance(plan, CopyPlan)
    assert plan.strategy is BuildStrategy.COPY
    assert plan.install_prefix == tmp_path / "prefix"


def test_build_script_without_cache_selects_script_mode(tmp_path: Path) -> None:
    plan = plan_build(
        _request(tmp_path, build_script=tmp_path / "build.sh", src_tarball=tmp_path / "src.tar"),
        _paths(tmp_path),
    )

    assert isinstance(plan, ScriptPlan)
    assert plan.strategy is BuildStrategy.SCRIPT
    assert plan.cache_out is None
    assert plan.work_dir == tmp_path / "tmp" / "hello"


def test_build_cache_selects_script_with_cache_mode(tmp_path: Path) -> None:
    plan = plan_build(
        _request(tmp_path, build_script=tmp_path / "build.sh", build_cache=tmp_path / "old.tar"),
        _paths(tmp_path, build_cache_out=tmp_path / "new.tar"),
    )

    assert isinstance(plan, ScriptPlan)
    assert plan.strategy is BuildStrategy.SCRIPT_WITH_CACHE
    assert plan.prior_cache == tmp_path / "old.tar"
    assert plan.cache_out == tmp_path / "new.tar"


def test_cache_without_script_fails_before_touching_filesystem(tmp_path: Path) -> None:
    paths = _paths(tmp_path, build_cache_out=tmp_path / "new.tar")

    with pytest.raises(PreconditionError) as excinfo:
        plan_build(
            _request(tmp_path, install_prefix=tmp_path / "prefix", build_cache=tmp_path / "c.tar"),
            paths,
        )

    assert excinfo.value.code == "E_PRECONDITION"
    assert "build script" in str(excinfo.value)
    assert not paths.out.exists()
    assert not paths.tmp_dir.exists()


def test_src_tarball_without_script_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(PreconditionError):
        plan_build(
            _request(tmp_path, install_prefix=tmp_path / "prefix", src_tarball=tmp_path / "s.tar"),
            _paths(tmp_path),
        )


def test_cache_requires_cache_output_path(tmp_path: Path) -> None:
    with pytest.raises(PreconditionError) as excinfo:
        plan_build(
            _request(tmp_path, build_script=tmp_path / "build.sh", build_cache=tmp_path / "c.tar"),
            _paths(tmp_path),
        )

    assert excinfo.value.hint is not None


def test_cache_output_without_cache_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(PreconditionError):
        plan_build(
            _request(tmp_path, build_script=tmp_path / "build.sh"),
            _paths(tmp_path, build_cache_out=tmp_path / "new.tar"),
        )


def test_copy_mode_needs_install_prefix(tmp_path: Path) -> None:
    with pytest.raises(PreconditionError):
        plan_build(_request(tmp_path), _paths(tmp_path))


@pytest.mark.parametrize("name", ["", "a/b"])
def test_invalid_package_names_are_rejected(tmp_path: Path, name: str) -> None:
    request = BuildRequest(
        name=name,
        flox_env=tmp_path / "env",
        build_wrapper_env=tmp_path / "wrapper",
        build_script=tmp_path / "build.sh",
    )

    with pytest.raises(PreconditionError):
        plan_build(request, _paths(tmp_path))


def _request(tmp_path: Path, **kwargs: Path) -> BuildRequest:
    return BuildRequest(
        name="hello",
        flox_env=tmp_path / "env",
        build_wrapper_env=tmp_path / "wrapper",
        **kwargs,  # type: ignore[arg-type]
    )


def _paths(tmp_path: Path, build_cache_out: Path | None = None) -> BuildPaths:
    return BuildPaths(
        out=tmp_path / "out",
        tmp_dir=tmp_path / "tmp",
        build_cache_out=build_cache_out,
    )


def test_plan_paths_are_absolute(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    root = Path.cwd()
    request = BuildRequest(
        name="hello",
        flox_env=Path("env"),
        build_wrapper_env=Path("wrapper"),
        build_script=Path("build.sh"),
        build_cache=Path("old.tar"),
    )

    plan = plan_build(
        request,
        BuildPaths(out=Path("out"), tmp_dir=Path("tmp"), build_cache_out=Path("new.tar")),
    )

    assert isinstance(plan, ScriptPlan)
    assert plan.build_script == root / "build.sh"
    assert plan.prior_cache == root / "old.tar"
    assert plan.cache_out == root / "new.tar"
    assert plan.paths.out == root / "out"
    assert plan.work_dir == root / "tmp" / "hello"
    assert plan.request.build_wrapper_env == root / "wrapper"
