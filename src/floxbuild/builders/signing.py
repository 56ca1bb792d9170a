"""Ad-hoc re-signing of Mach-O outputs on macOS."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

from floxbuild.errors import BackendExecutionError

MACHO_MAGICS = frozenset(
    {
        b"\xfe\xed\xfa\xce",
        b"\xce\xfa\xed\xfe",
        b"\xfe\xed\xfa\xcf",
        b"\xcf\xfa\xed\xfe",
        b"\xca\xfe\xba\xbe",
    }
)


def needs_signing() -> bool:
    return sys.platform == "darwin"


def is_macho(path: Path) -> bool:
    try:
        with path.open("rb") as handle:
            return handle.read(4) in MACHO_MAGICS
    except OSError:
        return False


def macho_files(root: Path) -> list[Path]:
    if root.is_symlink():
        return []
    if root.is_file():
        return [root] if is_macho(root) else []
    found: list[Path] = []
    for dirpath, _, filenames in os.walk(root):
        for filename in filenames:
            candidate = Path(dirpath) / filename
            if not candidate.is_symlink() and is_macho(candidate):
                found.append(candidate)
    return sorted(found)


def sign_outputs(root: Path, *, codesign_bin: str = "codesign") -> list[Path]:
    """Re-sign every Mach-O file under *root*; a no-op off macOS."""
    if not needs_signing():
        return []
    signed: list[Path] = []
    for path in macho_files(root):
        command = [codesign_bin, "--force", "--sign", "-", str(path)]
        result = subprocess.run(command, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            raise BackendExecutionError(
                "Failed to re-sign Mach-O output.",
                hint="Ensure codesign is available and the file is a valid Mach-O binary.",
                context={
                    "operation": "sign_outputs",
                    "path": str(path),
                    "returncode": str(result.returncode),
                    "stderr": result.stderr[:2000] if result.stderr else "",
                },
            )
        signed.append(path)
    return signed
