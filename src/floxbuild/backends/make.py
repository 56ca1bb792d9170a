"""Manifest builds driven by the ``flox-build.mk`` makefile.

The makefile evaluates the build template once per package and leaves
``result-<pkg>`` (and ``result-<pkg>-buildCache``) links in the base
directory. Build output is streamed line by line while make runs.
"""

from __future__ import annotations

import queue
import subprocess
import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Literal

from floxbuild.config import BuilderConfig
from floxbuild.errors import BackendExecutionError, CleanError

Stream = Literal["stdout", "stderr"]


@dataclass(frozen=True, slots=True)
class OutputLine:
    stream: Stream
    text: str


@dataclass(frozen=True, slots=True)
class Exit:
    returncode: int

    @property
    def success(self) -> bool:
        return self.returncode == 0


BuildEvent = OutputLine | Exit


class BuildOutput:
    """Events from a running build; the last one is always an :class:`Exit`."""

    def __init__(self, events: queue.Queue[BuildEvent]) -> None:
        self._events = events
        self._done = False

    def __iter__(self) -> Iterator[BuildEvent]:
        return self

    def __next__(self) -> BuildEvent:
        if self._done:
            raise StopIteration
        event = self._events.get()
        if isinstance(event, Exit):
            self._done = True
        return event

    def collect(self) -> tuple[str, str, int]:
        """Drain the stream and return ``(stdout, stderr, returncode)``."""
        stdout: list[str] = []
        stderr: list[str] = []
        returncode = -1
        for event in self:
            if isinstance(event, Exit):
                returncode = event.returncode
            elif event.stream == "stdout":
                stdout.append(event.text + "\n")
            else:
                stderr.append(event.text + "\n")
        return "".join(stdout), "".join(stderr), returncode


def result_link(base_dir: Path, package: str) -> Path:
    return base_dir / f"result-{package}"


def cache_link(base_dir: Path, package: str) -> Path:
    return base_dir / f"result-{package}-buildCache"


@dataclass(slots=True)
class MakeManifestBuilder:
    build_mk: Path
    make_bin: str = "make"
    name: str = "flox_build_mk"

    @classmethod
    def from_config(cls, config: BuilderConfig) -> MakeManifestBuilder:
        if config.build_mk is None:
            raise BackendExecutionError(
                "No build makefile configured.",
                hint="Set FLOX_BUILD_MK to the path of flox-build.mk.",
                context={"operation": "configure"},
            )
        return cls(build_mk=config.build_mk, make_bin=config.make_bin)

    def base_command(self, base_dir: Path, flox_env: Path) -> list[str]:
        return [
            self.make_bin,
            "-f",
            str(self.build_mk),
            "-C",
            str(base_dir),
            f"FLOX_ENV={flox_env}",
        ]

    def build(self, base_dir: Path, flox_env: Path, packages: Sequence[str]) -> BuildOutput:
        """Start building *packages* (all packages when empty) in the background.

        Iterate the returned :class:`BuildOutput` to follow progress and wait
        for completion. A package the environment does not define makes the
        makefile fail; the caller only sees a non-zero exit.
        """
        command = self.base_command(base_dir, flox_env)
        command.extend(_targets("build", packages))
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            raise BackendExecutionError(
                "Failed to call package builder.",
                hint=str(exc),
                context={"backend": self.name, "operation": "build", "command": " ".join(command)},
            ) from exc

        events: queue.Queue[BuildEvent] = queue.Queue()
        readers = [
            threading.Thread(target=_pump, args=(process.stdout, "stdout", events), daemon=True),
            threading.Thread(target=_pump, args=(process.stderr, "stderr", events), daemon=True),
        ]
        for reader in readers:
            reader.start()

        def _wait() -> None:
            for reader in readers:
                reader.join()
            events.put(Exit(returncode=process.wait()))

        threading.Thread(target=_wait, daemon=True).start()
        return BuildOutput(events)

    def clean(self, base_dir: Path, flox_env: Path, packages: Sequence[str]) -> None:
        """Remove result links, their store paths and temporary build dirs."""
        command = self.base_command(base_dir, flox_env)
        command.extend(_targets("clean", packages))
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise BackendExecutionError(
                "Failed to call package builder.",
                hint=str(exc),
                context={"backend": self.name, "operation": "clean", "command": " ".join(command)},
            ) from exc
        if result.returncode != 0:
            raise CleanError(
                "Failed to clean up build artifacts.",
                stdout=result.stdout,
                stderr=result.stderr,
                returncode=result.returncode,
                context={
                    "backend": self.name,
                    "operation": "clean",
                    "returncode": str(result.returncode),
                    "stderr": result.stderr[-2000:] if result.stderr else "",
                },
            )


def _targets(action: str, packages: Sequence[str]) -> list[str]:
    if not packages:
        return [action]
    return [f"{action}/{package}" for package in packages]


def _pump(pipe: IO[str] | None, stream: Stream, events: queue.Queue[BuildEvent]) -> None:
    if pipe is None:
        return
    with pipe:
        for line in pipe:
            events.put(OutputLine(stream=stream, text=line.rstrip("\n")))
