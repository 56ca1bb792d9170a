"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across builder and backend surfaces."""

    PRECONDITION = "E_PRECONDITION"
    MISSING_OUTPUT = "E_MISSING_OUTPUT"
    WRAP = "E_WRAP"
    BUILD_SCRIPT = "E_BUILD_SCRIPT"
    ARCHIVE = "E_ARCHIVE"
    BACKEND_EXECUTION = "E_BACKEND_EXECUTION"
    CLEAN = "E_CLEAN"


class FloxBuildError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class PreconditionError(FloxBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PRECONDITION, hint=hint, context=context)


class MissingOutputError(FloxBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MISSING_OUTPUT, hint=hint, context=context)


class WrapError(FloxBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.WRAP, hint=hint, context=context)


class BuildScriptError(FloxBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD_SCRIPT, hint=hint, context=context)


class ArchiveError(FloxBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ARCHIVE, hint=hint, context=context)


class BackendExecutionError(FloxBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BACKEND_EXECUTION, hint=hint, context=context)


class CleanError(FloxBuildError):
    """Raised when the manifest builder fails to remove build artifacts."""

    stdout: str
    stderr: str
    returncode: int

    def __init__(
        self,
        message: str,
        *,
        stdout: str,
        stderr: str,
        returncode: int,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CLEAN, hint=hint, context=context)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode


__all__ = [
    "ArchiveError",
    "BackendExecutionError",
    "BuildScriptError",
    "CleanError",
    "ErrorCode",
    "FloxBuildError",
    "MissingOutputError",
    "PreconditionError",
    "WrapError",
]
