"""Backends that drive manifest builds."""

from .make import BuildEvent, BuildOutput, Exit, MakeManifestBuilder, OutputLine, cache_link, result_link

__all__ = [
    "BuildEvent",
    "BuildOutput",
    "Exit",
    "MakeManifestBuilder",
    "OutputLine",
    "cache_link",
    "result_link",
]
