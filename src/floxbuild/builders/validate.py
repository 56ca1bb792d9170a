"""Output layout checks and the remediation text shown when they fail."""

from __future__ import annotations

import os
import stat
import warnings
from pathlib import Path

from floxbuild.errors import MissingOutputError

BIN_DIRS = ("bin", "sbin")

COPY_HINTS = (
    "  - copy a single file with 'mkdir -p $out/bin && cp file $out/bin'",
    "  - copy a bin directory with 'mkdir $out && cp -r bin $out'",
    "  - copy multiple files with 'mkdir -p $out/bin && cp bin/* $out/bin'",
    "  - copy files from an Autotools project with 'make install PREFIX=$out'",
)

MISSING_OUTPUT_MESSAGE = "❌  ERROR: Build command did not copy outputs to '$out'."

NO_EXECUTABLES_MESSAGE = (
    "⚠️  WARNING: No executables found in '$out/bin'.",
    "Only executables in '$out/bin' will be available on the PATH.",
    "If your build produces executables, make sure they are copied to '$out/bin'.",
)

STRAY_EXECUTABLES_HEADER = "HINT: The following executables were found outside of '$out/bin':"


class MissingExecutablesWarning(UserWarning):
    """Warning raised when a build places nothing under ``bin`` or ``sbin``."""


def missing_output_error(out: Path, *, package: str, operation: str) -> MissingOutputError:
    return MissingOutputError(
        MISSING_OUTPUT_MESSAGE,
        hint="\n" + "\n".join(COPY_HINTS),
        context={"operation": operation, "package": package, "out": str(out)},
    )


def ensure_output_exists(out: Path, *, package: str) -> None:
    if not os.path.lexists(out):
        raise missing_output_error(out, package=package, operation="validate_output")


def is_executable_file(path: Path) -> bool:
    """True for regular, non-symlink files with any execute bit set."""
    try:
        mode = path.lstat().st_mode
    except FileNotFoundError:
        return False
    return stat.S_ISREG(mode) and bool(mode & 0o111)


def executables_in_bin(out: Path) -> list[str]:
    """Executables placed directly under ``bin``/``sbin``, relative to *out*."""
    found: list[str] = []
    for dirname in BIN_DIRS:
        directory = out / dirname
        if directory.is_symlink() or not directory.is_dir():
            continue
        for entry in sorted(directory.iterdir()):
            if is_executable_file(entry):
                found.append(entry.relative_to(out).as_posix())
    return found


def stray_executables(out: Path) -> list[str]:
    """Executables anywhere in *out* except the top-level ``bin``/``sbin``."""
    if not out.is_dir() or out.is_symlink():
        return []
    found: list[str] = []
    for root, dirnames, filenames in os.walk(out):
        root_path = Path(root)
        if root_path == out:
            dirnames[:] = [name for name in dirnames if name not in BIN_DIRS]
        for filename in filenames:
            candidate = root_path / filename
            if is_executable_file(candidate):
                found.append(candidate.relative_to(out).as_posix())
    return sorted(found)


def no_executables_lines(stray: list[str]) -> list[str]:
    lines = [*NO_EXECUTABLES_MESSAGE, *COPY_HINTS]
    if stray:
        lines.append("")
        lines.append(STRAY_EXECUTABLES_HEADER)
        lines.extend(f"  - {path}" for path in stray)
    return lines


def warn_missing_executables(package: str) -> None:
    warnings.warn(
        f"Package `{package}` installed no executables under $out/bin or $out/sbin.",
        MissingExecutablesWarning,
        stacklevel=3,
    )
