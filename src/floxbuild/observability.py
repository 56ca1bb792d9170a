"""Structured logging and diagnostic output helpers."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO


@dataclass(slots=True)
class StructuredLogger:
    """Collects structured records and mirrors them to a diagnostic stream.

    The diagnostic stream is kept apart from the stdout/stderr of the build
    script itself; callers that only want the records pass ``stream=None``.
    """

    records: list[dict[str, Any]] = field(default_factory=list)
    stream: TextIO | None = field(default_factory=lambda: sys.stderr)

    def log(
        self,
        *,
        operation: str,
        package: str | None,
        phase: str | None,
        message: str,
        level: str = "info",
        extra: dict[str, Any] | None = None,
    ) -> None:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "package": package,
            "phase": phase,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        if self.stream is not None:
            self.stream.write(message + "\n")
            self.stream.flush()

    def records_for_phase(self, phase: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("phase") == phase]

    def records_at_level(self, level: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("level") == level]

    def text(self) -> str:
        """Return every logged message joined the way the stream saw them."""
        return "".join(f"{record['message']}\n" for record in self.records)

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path
