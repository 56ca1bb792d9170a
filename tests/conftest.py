"""Shared test fixtures."""

from __future__ import annotations

import shutil
import tarfile
from collections.abc import Callable
from pathlib import Path

import pytest

from floxbuild.config import BuilderConfig
from floxbuild.observability import StructuredLogger

# Stand-in for an environment's activate script: drop options up to `--`
# and exec the remaining command.
ACTIVATE_SCRIPT = """#!/bin/sh
while [ "$#" -gt 0 ] && [ "$1" != "--" ]; do
  shift
done
shift
exec "$@"
"""


def make_env(root: Path) -> Path:
    (root / "bin").mkdir(parents=True)
    activate = root / "activate"
    activate.write_text(ACTIVATE_SCRIPT, encoding="utf-8")
    activate.chmod(0o755)
    return root


def make_tarball(path: Path, files: dict[str, str]) -> Path:
    staging = path.parent / f"{path.name}.staging"
    staging.mkdir(parents=True)
    for name, content in files.items():
        target = staging / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    with tarfile.open(path, mode="w") as archive:
        for name in sorted(files):
            archive.add(staging / name, arcname=name)
    shutil.rmtree(staging)
    return path


@pytest.fixture
def flox_env(tmp_path: Path) -> Path:
    return make_env(tmp_path / "flox-env")


@pytest.fixture
def wrapper_env(tmp_path: Path) -> Path:
    return make_env(tmp_path / "build-wrapper-env")


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger(stream=None)


@pytest.fixture
def config() -> BuilderConfig:
    bash = shutil.which("bash")
    if bash is None:
        pytest.skip("bash is required to run generated launchers")
    return BuilderConfig(runtime_shell=bash)


@pytest.fixture
def tarball() -> Callable[[Path, dict[str, str]], Path]:
    return make_tarball
