"""Builder configuration and environment detection."""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_SYSTEM_LOGIN = Path("/etc/zlogin")
DEFAULT_WRAPPED_RUNTIME_DIR = "/tmp"


def _default_runtime_shell() -> str:
    return shutil.which("bash") or "/bin/bash"


@dataclass(frozen=True, slots=True)
class BuilderConfig:
    """Tunables shared by the build executor, the CLI and the make backend.

    ``runtime_shell`` is the interpreter written into generated launchers.
    ``wrapped_runtime_dir`` is exported as ``FLOX_RUNTIME_DIR`` by launchers,
    which run outside the build sandbox and cannot reuse its temp dir.
    """

    runtime_shell: str = field(default_factory=_default_runtime_shell)
    wrapped_runtime_dir: str = DEFAULT_WRAPPED_RUNTIME_DIR
    system_login: Path = DEFAULT_SYSTEM_LOGIN
    build_mk: Path | None = None
    make_bin: str = "make"
    codesign_bin: str = "codesign"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BuilderConfig:
        env = os.environ if environ is None else environ
        build_mk = env.get("FLOX_BUILD_MK")
        return cls(
            runtime_shell=env.get("FLOX_BUILD_RUNTIME_SHELL") or _default_runtime_shell(),
            build_mk=Path(build_mk) if build_mk else None,
            make_bin=env.get("GNUMAKE_BIN") or "make",
        )
