"""Copy mode: turn a pre-installed prefix into the build output."""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path

from floxbuild.builders.validate import missing_output_error


def copy_install_prefix(prefix: Path, out: Path, *, package: str) -> None:
    """Copy *prefix* to *out*, rewriting every reference to *prefix*.

    Directories are copied with their metadata plus owner write permission;
    a single file is copied and rewritten in place. Occurrences of the prefix
    path are replaced byte-wise in regular files and in symlink targets.
    Relative paths are made absolute first so only the full prefix path is
    ever rewritten.
    """
    prefix, out = prefix.absolute(), out.absolute()
    if not os.path.lexists(prefix):
        raise missing_output_error(out, package=package, operation="copy_install_prefix")

    old = os.fsencode(str(prefix))
    new = os.fsencode(str(out))

    if prefix.is_dir():
        out.mkdir()
        shutil.copytree(prefix, out, symlinks=True, dirs_exist_ok=True)
        _add_owner_write(out)
        for root, dirnames, filenames in os.walk(out):
            root_path = Path(root)
            for name in (*dirnames, *filenames):
                path = root_path / name
                if path.is_symlink():
                    _rewrite_link(path, old, new)
                elif path.is_file():
                    _add_owner_write(path)
                    rewrite_references(path, old, new)
                else:
                    _add_owner_write(path)
        return

    shutil.copy2(prefix, out)
    _add_owner_write(out)
    rewrite_references(out, old, new)


def rewrite_references(path: Path, old: bytes, new: bytes) -> bool:
    """Replace *old* with *new* in the bytes of *path*, keeping its mtime."""
    payload = path.read_bytes()
    if old not in payload:
        return False
    info = path.stat()
    path.write_bytes(payload.replace(old, new))
    os.utime(path, ns=(info.st_atime_ns, info.st_mtime_ns))
    return True


def _rewrite_link(path: Path, old: bytes, new: bytes) -> None:
    target = os.fsencode(os.readlink(path))
    if old not in target:
        return
    path.unlink()
    os.symlink(os.fsdecode(target.replace(old, new)), path)


def _add_owner_write(path: Path) -> None:
    mode = path.lstat().st_mode
    if not mode & stat.S_IWUSR:
        path.chmod(stat.S_IMODE(mode) | stat.S_IWUSR)
