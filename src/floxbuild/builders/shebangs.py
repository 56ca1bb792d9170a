"""Rewrite interpreter lines so scripts resolve outside the build sandbox."""

from __future__ import annotations

import os
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

DEFAULT_STORE_DIR = "/nix/store"


@dataclass(frozen=True, slots=True)
class ShebangPatch:
    path: Path
    old: str
    new: str


@dataclass(frozen=True, slots=True)
class UnresolvedShebang:
    path: Path
    interpreter: str


@dataclass(slots=True)
class ShebangPatcher:
    """Resolve ``#!`` interpreters against an explicit search path.

    Interpreters already under ``store_dir`` are left alone. ``/usr/bin/env
    prog`` lines (including ``env -S``) are resolved to ``prog`` directly.
    """

    search_path: Sequence[str]
    store_dir: str = DEFAULT_STORE_DIR

    @classmethod
    def preferring(cls, *bin_dirs: Path, store_dir: str | None = None) -> ShebangPatcher:
        ambient = [part for part in os.environ.get("PATH", "").split(os.pathsep) if part]
        return cls(
            search_path=[*(str(path) for path in bin_dirs), *ambient],
            store_dir=store_dir or os.environ.get("NIX_STORE") or DEFAULT_STORE_DIR,
        )

    def patch_tree(self, root: Path) -> tuple[list[ShebangPatch], list[UnresolvedShebang]]:
        patched: list[ShebangPatch] = []
        unresolved: list[UnresolvedShebang] = []
        if root.is_symlink() or not root.is_dir():
            return patched, unresolved
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if path.is_symlink() or not os.access(path, os.X_OK):
                    continue
                outcome = self.patch_file(path)
                if isinstance(outcome, ShebangPatch):
                    patched.append(outcome)
                elif isinstance(outcome, UnresolvedShebang):
                    unresolved.append(outcome)
        return patched, unresolved

    def patch_file(self, path: Path) -> ShebangPatch | UnresolvedShebang | None:
        with path.open("rb") as handle:
            first_line = handle.readline()
        if not first_line.startswith(b"#!"):
            return None
        try:
            old = first_line[2:].decode("utf-8").rstrip("\r\n")
        except UnicodeDecodeError:
            return None

        interpreter, _, args = old.strip().partition(" ")
        if not interpreter or interpreter.startswith(self.store_dir + "/"):
            return None

        if interpreter.endswith("/bin/env"):
            new = self._resolve_env_line(interpreter, args.strip())
        else:
            resolved = self._which(os.path.basename(interpreter))
            new = f"{resolved} {args.strip()}".rstrip() if resolved else None

        if new is None:
            return UnresolvedShebang(path=path, interpreter=old.strip())
        if new == old.strip():
            return None

        payload = path.read_bytes()
        info = path.stat()
        path.write_bytes(b"#!" + new.encode("utf-8") + payload[len(first_line.rstrip(b"\r\n")) :])
        os.utime(path, ns=(info.st_atime_ns, info.st_mtime_ns))
        return ShebangPatch(path=path, old=old.strip(), new=new)

    def _resolve_env_line(self, env_path: str, args: str) -> str | None:
        if args.startswith("-S"):
            program, _, rest = args[2:].strip().partition(" ")
            resolved = self._which(program)
            if resolved is None:
                return None
            # env -S keeps splitting the remaining arguments at runtime.
            env_bin = self._which("env") or env_path
            return f"{env_bin} -S {resolved} {rest.strip()}".rstrip()
        if args.startswith("-") or not args:
            return None
        program, _, rest = args.partition(" ")
        resolved = self._which(program)
        if resolved is None:
            return None
        return f"{resolved} {rest.strip()}".rstrip()

    def _which(self, program: str) -> str | None:
        return shutil.which(program, path=os.pathsep.join(self.search_path))
