"""
Build backend interface for Dinghy.

A build backend compiles the project for a target triple inside an
environment prepared by a Platform, and reports the executables it produced
together with the shared libraries they need at run time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from dinghy.project import Project


class CompileMode(Enum):
    """What the build produces."""

    BUILD = "build"
    TEST = "test"
    BENCH = "bench"


@dataclass
class BuildArgs:
    """
    Options of one build.

    Attributes:
        mode: Build executables, test binaries or benchmark binaries
        release: Optimized build
        verbose: Ask the build tool and linker for verbose output
        forced_overlays: Libraries always passed to the linker (-l<name>)
        strip: Strip produced binaries before bundling
        extra_args: Extra arguments passed verbatim to the build tool
    """

    mode: CompileMode = CompileMode.BUILD
    release: bool = False
    verbose: bool = False
    forced_overlays: List[str] = field(default_factory=list)
    strip: bool = False
    extra_args: List[str] = field(default_factory=list)


@dataclass
class Runnable:
    """
    An executable produced by a build.

    Attributes:
        id: Identifier, unique within a build
        exe: Executable path on the host
        source: Root of the source tree the executable was built from
    """

    id: str
    exe: Path
    source: Path


@dataclass
class BuildResult:
    runnables: List[Runnable] = field(default_factory=list)
    dynamic_libraries: List[Path] = field(default_factory=list)
    triple: Optional[str] = None


class BuildBackend(ABC):
    """
    Abstract base class for build backends.

    A build backend is the only component that actually compiles anything.
    """

    @abstractmethod
    def build(
        self,
        project: "Project",
        triple: Optional[str],
        build_args: BuildArgs,
        environ: Dict[str, str],
        excluded_lib_dirs: Sequence[Path] = (),
    ) -> BuildResult:
        """
        Build the project.

        Args:
            project: Project to build
            triple: Target triple, None to build for the host
            build_args: Build options
            environ: Complete environment of the build process
            excluded_lib_dirs: Directories whose libraries are provided by the
                target (sysroot) and must not be bundled

        Raises:
            BuildError: If the build tool is missing or fails
        """
        pass
