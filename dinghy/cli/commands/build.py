"""
Build, run, test and bench commands implementation.

The platform and device are matched before compiling anything, so an
impossible request fails fast. Each produced executable then goes through
bundle, install and run on the selected device.
"""

import logging

from dinghy.backends.base import BuildArgs, CompileMode
from dinghy.cli.utils import parse_env_args, probe

logger = logging.getLogger(__name__)

COMMAND_MODES = {
    "build": CompileMode.BUILD,
    "run": CompileMode.BUILD,
    "test": CompileMode.TEST,
    "bench": CompileMode.BENCH,
}


def run(args) -> int:
    """
    Run a build-like command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    envs = parse_env_args(args.env)
    dinghy, project = probe(args)
    platform, device = dinghy.select(args.platform, args.device)
    logger.info(f"Targeting platform {platform.id} and device {device.id}")

    mode = COMMAND_MODES[args.command]
    building_only = args.command == "build"
    build_args = BuildArgs(
        mode=mode,
        release=args.release,
        verbose=args.verbose,
        forced_overlays=list(args.overlay),
        strip=args.strip,
        extra_args=list(args.extra_args) if building_only else [],
    )
    build = platform.build(project, build_args)

    if building_only:
        for runnable in build.runnables:
            print(runnable.exe)
        return 0

    if not build.runnables:
        logger.error("Build produced nothing to run")
        return 1

    program_args = list(args.extra_args)
    if mode == CompileMode.BENCH:
        program_args.append("--bench")

    for runnable in build.runnables:
        logger.info(f"Running {runnable.id} on {device.id}")
        bundle = device.bundle_app(project, build, runnable)
        device.install_app(bundle)
        device.run_app(bundle, program_args, envs)
        if args.cleanup:
            device.clean_app(bundle)
    return 0
