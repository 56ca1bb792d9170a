"""Command-line entrypoint."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from floxbuild.activation import render_login_fragment
from floxbuild.backends import Exit, MakeManifestBuilder
from floxbuild.builders import BuildExecutor, plan_build
from floxbuild.config import BuilderConfig
from floxbuild.errors import FloxBuildError
from floxbuild.models import BuildPaths, BuildRequest, BuildStatus
from floxbuild.observability import StructuredLogger


def cmd_build(args: argparse.Namespace, config: BuilderConfig) -> int:
    request = BuildRequest(
        name=args.name,
        flox_env=args.flox_env,
        build_wrapper_env=args.build_wrapper_env,
        install_prefix=args.install_prefix,
        src_tarball=args.src_tarball,
        build_deps=tuple(args.build_dep),
        build_script=args.build_script,
        build_cache=args.build_cache,
    )
    paths = BuildPaths(
        out=args.out,
        tmp_dir=args.tmp_dir,
        build_cache_out=args.build_cache_out,
    )
    logger = StructuredLogger()
    try:
        plan = plan_build(request, paths)
        result = BuildExecutor(config=config, logger=logger).execute(plan)
    finally:
        if args.log_json is not None:
            logger.to_json_lines(args.log_json)
    if result.status is BuildStatus.FAILED_CACHE_PRESERVED:
        print(f"status: {result.status}", file=sys.stderr)
    return 0


def cmd_login_fragment(args: argparse.Namespace, config: BuilderConfig) -> int:
    sys.stdout.write(render_login_fragment(system_login=config.system_login))
    return 0


def cmd_manifest_build(args: argparse.Namespace, config: BuilderConfig) -> int:
    builder = MakeManifestBuilder.from_config(config)
    returncode = 1
    for event in builder.build(args.base_dir, args.flox_env, args.packages):
        if isinstance(event, Exit):
            returncode = event.returncode
        elif event.stream == "stdout":
            print(event.text, flush=True)
        else:
            print(event.text, file=sys.stderr, flush=True)
    return 0 if returncode == 0 else 1


def cmd_manifest_clean(args: argparse.Namespace, config: BuilderConfig) -> int:
    MakeManifestBuilder.from_config(config).clean(args.base_dir, args.flox_env, args.packages)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="floxbuild", description="flox package builder")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Build one package into an output path")
    build.add_argument("--name", required=True)
    build.add_argument("--flox-env", type=Path, required=True)
    build.add_argument("--build-wrapper-env", type=Path, required=True)
    build.add_argument("--out", type=Path, required=True)
    build.add_argument("--tmp-dir", type=Path, required=True)
    build.add_argument("--install-prefix", type=Path)
    build.add_argument("--src-tarball", type=Path)
    build.add_argument("--build-script", type=Path)
    build.add_argument("--build-cache", type=Path)
    build.add_argument("--build-cache-out", type=Path)
    build.add_argument("--build-dep", type=Path, action="append", default=[])
    build.add_argument("--log-json", type=Path)
    build.set_defaults(func=cmd_build)

    fragment = sub.add_parser("login-fragment", help="Print the zsh login restore fragment")
    fragment.set_defaults(func=cmd_login_fragment)

    for name, func, help_text in (
        ("manifest-build", cmd_manifest_build, "Build packages defined in an environment"),
        ("manifest-clean", cmd_manifest_clean, "Clean build artifacts of an environment"),
    ):
        manifest = sub.add_parser(name, help=help_text)
        manifest.add_argument("--base-dir", type=Path, required=True)
        manifest.add_argument("--flox-env", type=Path, required=True)
        manifest.add_argument("packages", nargs="*")
        manifest.set_defaults(func=func)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = BuilderConfig.from_env()
    try:
        return args.func(args, config)
    except FloxBuildError as exc:
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
