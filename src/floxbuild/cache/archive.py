"""Source and build-cache tarballs for incremental script builds."""

from __future__ import annotations

import hashlib
import os
import tarfile
from collections.abc import Iterable
from pathlib import Path

from floxbuild.errors import ArchiveError


def extract_source(tarball: Path, work_dir: Path) -> None:
    """Unpack *tarball* into *work_dir*, keeping timestamps and modes.

    Sources travel as a tarball rather than a copied directory because store
    files all carry the same epoch mtime, which would make them look older
    than intermediate build products.
    """
    with _open(tarball, operation="extract_source") as archive:
        _extract(archive, work_dir, members=None, source=tarball, operation="extract_source")


def merge_cache(cache: Path, work_dir: Path) -> list[str]:
    """Unpack *cache* into *work_dir* without replacing existing files.

    Returns the member names that were skipped because they already existed.
    A missing or empty cache file means there is nothing cached yet.
    """
    if not cache.exists() or cache.stat().st_size == 0:
        return []
    skipped: list[str] = []
    with _open(cache, operation="merge_cache") as archive:
        members: list[tarfile.TarInfo] = []
        for member in archive.getmembers():
            if os.path.lexists(work_dir / member.name):
                if not member.isdir():
                    skipped.append(member.name)
                continue
            members.append(member)
        _extract(archive, work_dir, members=members, source=cache, operation="merge_cache")
    return skipped


def cache_members(work_dir: Path) -> list[str]:
    """Regular files under *work_dir* as sorted relative paths."""
    found: list[str] = []
    for dirpath, _, filenames in os.walk(work_dir):
        for filename in filenames:
            path = Path(dirpath) / filename
            if path.is_file() and not path.is_symlink():
                found.append(path.relative_to(work_dir).as_posix())
    return sorted(found)


def write_cache(work_dir: Path, destination: Path) -> list[str]:
    """Write every regular file under *work_dir* to an uncompressed tarball.

    Only files are stored so directory times never leak into the archive, and
    members are sorted to keep the output stable across builds. The archive
    is replaced wholesale on every build, so compression is not worth its
    cross-platform instability.
    """
    members = cache_members(work_dir)
    destination.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(destination, mode="w", format=tarfile.GNU_FORMAT) as archive:
        for name in members:
            archive.add(work_dir / name, arcname=name, recursive=False)
    return members


def md5_checksums(paths: Iterable[Path]) -> list[str]:
    """Return ``md5sum``-style lines for *paths*."""
    lines: list[str] = []
    for path in paths:
        digest = hashlib.md5()
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(1 << 16), b""):
                digest.update(chunk)
        lines.append(f"{digest.hexdigest()}  {path}")
    return lines


def _open(path: Path, *, operation: str) -> tarfile.TarFile:
    try:
        return tarfile.open(path, mode="r:*")
    except (FileNotFoundError, tarfile.TarError) as exc:
        raise ArchiveError(
            "Unable to read tarball.",
            hint=str(exc),
            context={"operation": operation, "path": str(path)},
        ) from exc


def _extract(
    archive: tarfile.TarFile,
    work_dir: Path,
    *,
    members: list[tarfile.TarInfo] | None,
    source: Path,
    operation: str,
) -> None:
    try:
        archive.extractall(work_dir, members=members, filter="tar")
    except tarfile.TarError as exc:
        raise ArchiveError(
            "Unable to extract tarball.",
            hint=str(exc),
            context={"operation": operation, "path": str(source), "destination": str(work_dir)},
        ) from exc
