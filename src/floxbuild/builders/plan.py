"""Select a build strategy for a request and validate its preconditions."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from floxbuild.builders.base import BuildPlan, CopyPlan, ScriptPlan
from floxbuild.errors import PreconditionError
from floxbuild.models import BuildPaths, BuildRequest


def plan_build(request: BuildRequest, paths: BuildPaths) -> BuildPlan:
    """Return the typed plan for *request*.

    Every precondition is checked here so that a rejected request never
    touches the filesystem. Paths in the plan are absolute: copy mode
    rewrites the literal prefix path, and scripts run from their own
    working directory.
    """
    _check_preconditions(request, paths)
    request, paths = _absolute_request(request), _absolute_paths(paths)

    if request.build_script is not None:
        return ScriptPlan(
            request=request,
            paths=paths,
            build_script=request.build_script,
            src_tarball=request.src_tarball,
            prior_cache=request.build_cache,
            cache_out=paths.build_cache_out if request.build_cache is not None else None,
        )
    if request.install_prefix is None:
        raise PreconditionError(
            "Either a build script or an install prefix is required.",
            context={"operation": "plan_build", "package": request.name},
        )
    return CopyPlan(request=request, paths=paths, install_prefix=request.install_prefix)


def _absolute(path: Path | None) -> Path | None:
    return None if path is None else path.absolute()


def _absolute_request(request: BuildRequest) -> BuildRequest:
    return replace(
        request,
        flox_env=request.flox_env.absolute(),
        build_wrapper_env=request.build_wrapper_env.absolute(),
        install_prefix=_absolute(request.install_prefix),
        src_tarball=_absolute(request.src_tarball),
        build_deps=tuple(dep.absolute() for dep in request.build_deps),
        build_script=_absolute(request.build_script),
        build_cache=_absolute(request.build_cache),
    )


def _absolute_paths(paths: BuildPaths) -> BuildPaths:
    return BuildPaths(
        out=paths.out.absolute(),
        tmp_dir=paths.tmp_dir.absolute(),
        build_cache_out=_absolute(paths.build_cache_out),
    )


def _check_preconditions(request: BuildRequest, paths: BuildPaths) -> None:
    context = {"operation": "plan_build", "package": request.name}
    if not request.name or "/" in request.name:
        raise PreconditionError(
            f"Invalid package name: {request.name!r}.",
            hint="Package names must be non-empty and must not contain '/'.",
            context=context,
        )
    if request.build_cache is not None and request.build_script is None:
        raise PreconditionError(
            "A build cache is only meaningful with a build script.",
            hint="Drop the build cache or supply a build script.",
            context=context,
        )
    if request.src_tarball is not None and request.build_script is None:
        raise PreconditionError(
            "A source tarball is only used together with a build script.",
            hint="Drop the source tarball or supply a build script.",
            context=context,
        )
    if request.build_cache is not None and paths.build_cache_out is None:
        raise PreconditionError(
            "A build cache was requested but no cache output path was given.",
            hint="Pass the path the new cache archive should be written to.",
            context=context,
        )
    if request.build_cache is None and paths.build_cache_out is not None:
        raise PreconditionError(
            "A cache output path was given but no build cache was requested.",
            hint="Pass the prior build cache path to enable caching.",
            context=context,
        )
