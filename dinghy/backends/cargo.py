"""
Cargo build backend.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dinghy.backends.base import (
    BuildArgs,
    BuildBackend,
    BuildResult,
    CompileMode,
    Runnable,
)
from dinghy.core.exceptions import BuildError
from dinghy.core.filesystem import is_relative_to
from dinghy.cross.overlay import is_shared_library

logger = logging.getLogger(__name__)

SHARED_LIBRARY_KINDS = ("cdylib", "dylib")
SHARED_LIBRARY_SUFFIXES = (".so", ".dylib", ".dll")


class CargoBackend(BuildBackend):
    """
    Cargo build backend implementation.
    """

    def __init__(self, cargo: str = "cargo"):
        self.cargo = cargo

    def command(
        self, triple: Optional[str], build_args: BuildArgs
    ) -> List[str]:
        """Cargo command line for a build."""
        if build_args.mode == CompileMode.BUILD:
            cmd = [self.cargo, "build"]
        else:
            cmd = [self.cargo, build_args.mode.value, "--no-run"]
        cmd.append("--message-format=json")
        if triple:
            cmd.extend(["--target", triple])
        if build_args.release:
            cmd.append("--release")
        if build_args.verbose:
            cmd.append("-v")
        cmd.extend(build_args.extra_args)
        return cmd

    def build(
        self,
        project,
        triple: Optional[str],
        build_args: BuildArgs,
        environ: Dict[str, str],
        excluded_lib_dirs: Sequence[Path] = (),
    ) -> BuildResult:
        """
        Build the project with cargo.
        """
        cmd = self.command(triple, build_args)
        logger.info(f"Building {project.root.name} for {triple or 'host'}")
        logger.debug(f"Cargo command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                cwd=project.root,
                env=environ,
                stdout=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError as e:
            raise BuildError(f"{self.cargo} not found in PATH") from e

        if result.returncode != 0:
            raise BuildError(
                f"{' '.join(cmd)} failed with exit code {result.returncode}"
            )

        build = parse_messages(
            result.stdout.splitlines(), build_args.mode, excluded_lib_dirs
        )
        build.triple = triple
        logger.debug(
            f"Build produced {len(build.runnables)} runnable(s) and "
            f"{len(build.dynamic_libraries)} dynamic librarie(s)"
        )
        return build


def parse_messages(
    lines: Iterable[str],
    mode: CompileMode,
    excluded_lib_dirs: Sequence[Path] = (),
) -> BuildResult:
    """
    Extract runnables and shared libraries from cargo's JSON messages.

    Lines that are not JSON objects (cargo may print plain text) are ignored.
    """
    runnables: List[Runnable] = []
    libraries: Dict[str, Path] = {}
    excluded = [Path(d) for d in excluded_lib_dirs]

    def add_library(path: Path) -> None:
        if any(is_relative_to(path, d) for d in excluded):
            return
        libraries.setdefault(path.name, path)

    for line in lines:
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Ignoring unparsable cargo output: {line}")
            continue

        reason = message.get("reason")
        if reason == "compiler-artifact":
            runnable = _runnable(message, mode)
            if runnable is not None:
                runnables.append(runnable)
            kinds = message.get("target", {}).get("kind", [])
            if any(kind in SHARED_LIBRARY_KINDS for kind in kinds):
                for filename in message.get("filenames", []):
                    if filename.endswith(SHARED_LIBRARY_SUFFIXES):
                        add_library(Path(filename))
        elif reason == "build-script-executed":
            for linked in message.get("linked_paths", []):
                directory = Path(linked.split("=", 1)[-1])
                if not directory.is_dir():
                    continue
                for candidate in sorted(directory.iterdir()):
                    if is_shared_library(candidate):
                        add_library(candidate)

    return BuildResult(runnables=runnables, dynamic_libraries=list(libraries.values()))


def _runnable(message: Dict[str, Any], mode: CompileMode) -> Optional[Runnable]:
    executable = message.get("executable")
    if not executable:
        return None
    is_test = bool(message.get("profile", {}).get("test"))
    kinds = message.get("target", {}).get("kind", [])

    if mode == CompileMode.BUILD:
        if is_test or "bin" not in kinds:
            return None
    elif not is_test:
        return None

    exe = Path(executable)
    manifest = message.get("manifest_path")
    source = Path(manifest).parent if manifest else exe.parent
    return Runnable(id=exe.name, exe=exe, source=source)
