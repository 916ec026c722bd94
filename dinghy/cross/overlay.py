"""
Overlay resolution for cross builds.

An overlay is a directory tree holding target-specific native libraries
(and usually their headers). Overlays are looked up in
``.dinghy/overlay/<platform-id>/<overlay-id>`` under every ancestor of the
project and under the home directory, and may also be declared explicitly in
configuration. For each overlay, existing pkg-config directories are added to
the pkg-config search path; when an overlay ships none, a ``.pc`` descriptor
listing its shared libraries is generated so pkg-config lookups succeed.

Usage:
    from dinghy.cross.overlay import Overlayer

    overlayer = Overlayer("pi", "armv7-unknown-linux-gnueabihf",
                          sysroot=Path("/opt/tc/sysroot"),
                          work_dir=project.overlay_work_dir(triple, "pi"))
    overlays = overlayer.overlay(env, platform_config.overlays, project.root)
"""

import logging
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from dinghy.config.parser import OverlayConfig
from dinghy.core.environment import BuildEnvironment, envify, target_key
from dinghy.core.exceptions import LibraryNameError, OverlayError, OverlayReadError
from dinghy.core.filesystem import atomic_write, contains_file_with_ext
from dinghy.cross.sysroot import path_between

logger = logging.getLogger(__name__)

OVERLAY_DIR = Path(".dinghy") / "overlay"
PKG_CONFIG_DIR_NAME = "pkgconfig"
PC_EXTENSION = ".pc"
SHARED_LIB_EXTENSION = ".so"


class OverlayScope(Enum):
    """Where an overlay applies."""

    APPLICATION = "application"  # project tree or explicit configuration
    SYSTEM = "system"  # user-wide, from the home directory


@dataclass(frozen=True)
class Overlay:
    id: str
    path: Path
    scope: OverlayScope = OverlayScope.APPLICATION


# ============================================================================
# Library descriptors
# ============================================================================


def is_shared_library(path: Path) -> bool:
    """Match ``libfoo.so`` as well as versioned ``libfoo.so.1.2``."""
    name = path.name
    return path.is_file() and (
        name.endswith(SHARED_LIB_EXTENSION) or f"{SHARED_LIB_EXTENSION}." in name
    )


def lib_name(file_path: Path) -> str:
    """
    Derive the linker name of a shared library file.

    Example:
        >>> lib_name(Path("libfoo.so.1.2"))
        'foo'

    Raises:
        LibraryNameError: If nothing is left once prefix and suffix are removed
    """
    file_name = Path(file_path).name
    start = 3 if file_name.startswith("lib") else 0
    end = file_name.find(SHARED_LIB_EXTENSION)
    if end == -1:
        end = len(file_name)
    if end <= start:
        raise LibraryNameError(file_path)
    return file_name[start:end]


def render_pc_file(name: str, libs: Sequence[str]) -> str:
    """Render a pkg-config descriptor for a relocatable overlay."""
    lib_flags = "".join(f" -l{lib}" for lib in libs)
    return (
        "prefix:/\n"
        "exec_prefix:${prefix}\n"
        f"Name: {name}\n"
        f"Description: {name}\n"
        "Version: unspecified\n"
        f"Libs: -L${{prefix}} {lib_flags}\n"
        "Cflags: -I${prefix}\n"
    )


def dedup_overlays(overlays: Iterable[Overlay]) -> List[Overlay]:
    """Keep the first overlay seen for every id."""
    seen = set()
    unique = []
    for overlay in overlays:
        if overlay.id in seen:
            logger.debug(f"Overlay {overlay.id} at {overlay.path} shadowed")
            continue
        seen.add(overlay.id)
        unique.append(overlay)
    return unique


# ============================================================================
# Overlayer
# ============================================================================


class Overlayer:
    """
    Resolve and apply the overlays of one platform.

    Args:
        platform_id: Platform identifier (overlay directory name)
        triple: Target triple, None for the host platform
        sysroot: Target sysroot the overlay prefixes are relative to
        work_dir: Scratch directory for generated descriptors
    """

    def __init__(
        self,
        platform_id: str,
        triple: Optional[str],
        sysroot: Path,
        work_dir: Path,
    ):
        self.platform_id = platform_id
        self.triple = triple
        self.sysroot = Path(sysroot)
        self.work_dir = Path(work_dir)

    def candidate_paths(
        self, project_root: Path, home: Optional[Path] = None
    ) -> List[Path]:
        """Overlay roots from the project up to the filesystem root, then home."""
        project_root = Path(project_root).resolve()
        paths = [
            directory / OVERLAY_DIR / self.platform_id
            for directory in [project_root, *project_root.parents]
        ]
        home_path = (home or Path.home()).resolve() / OVERLAY_DIR / self.platform_id
        if home_path not in paths:
            paths.append(home_path)
        return paths

    @staticmethod
    def from_config(overlays: Optional[Dict[str, OverlayConfig]]) -> List[Overlay]:
        return [
            Overlay(id=overlay_id, path=Path(conf.path), scope=OverlayScope.APPLICATION)
            for overlay_id, conf in (overlays or {}).items()
        ]

    @staticmethod
    def from_directory(
        overlay_root: Path, scope: OverlayScope = OverlayScope.APPLICATION
    ) -> List[Overlay]:
        """
        List the overlays found directly under overlay_root.

        A missing root simply has no overlays.

        Raises:
            OverlayReadError: If the root exists but cannot be read
        """
        if not overlay_root.exists():
            return []
        try:
            entries = sorted(overlay_root.iterdir())
        except OSError as e:
            raise OverlayReadError(
                f"Couldn't read overlay root directory '{overlay_root}': {e}"
            ) from e
        return [
            Overlay(id=entry.name, path=entry, scope=scope)
            for entry in entries
            if entry.is_dir()
        ]

    def resolve(
        self,
        configured: Optional[Dict[str, OverlayConfig]],
        project_root: Path,
        home: Optional[Path] = None,
    ) -> List[Overlay]:
        """Configured overlays first, then the nearest directories, deduplicated."""
        home_root = (home or Path.home()).resolve() / OVERLAY_DIR / self.platform_id
        found = list(self.from_config(configured))
        for path in self.candidate_paths(project_root, home):
            scope = OverlayScope.SYSTEM if path == home_root else OverlayScope.APPLICATION
            found.extend(self.from_directory(path, scope))
        return dedup_overlays(found)

    def overlay(
        self,
        env: BuildEnvironment,
        configured: Optional[Dict[str, OverlayConfig]],
        project_root: Path,
        home: Optional[Path] = None,
    ) -> List[Overlay]:
        """Resolve the overlays of the platform and register them in env."""
        overlays = self.resolve(configured, project_root, home)
        self.apply(env, overlays)
        return overlays

    @property
    def search_path_key(self) -> str:
        # PKG_CONFIG_LIBDIR replaces the default search path, only wanted
        # when cross compiling
        if self.triple is None:
            return "PKG_CONFIG_PATH"
        return target_key("PKG_CONFIG_LIBDIR", self.triple)

    def apply(self, env: BuildEnvironment, overlays: Iterable[Overlay]) -> None:
        self._reset_work_dir()
        env.append_path(self.search_path_key, self.work_dir)

        for overlay in overlays:
            logger.debug(f"Overlaying '{overlay.id}'")
            pkg_config_dirs = self.pkg_config_dirs(overlay.path)
            for pkg_config_dir in pkg_config_dirs:
                logger.debug(f"Discovered pkg-config directory '{pkg_config_dir}'")
                env.append_path(self.search_path_key, pkg_config_dir)
            if not pkg_config_dirs:
                self.generate_pkg_config_file(overlay)

            # Only this overlay's prefix is redirected
            env.set_if_undefined(
                f"PKG_CONFIG_{envify(overlay.id)}_PREFIX",
                path_between(self.sysroot, overlay.path),
            )

    @staticmethod
    def pkg_config_dirs(overlay_path: Path) -> List[Path]:
        found = []
        for current, dirnames, _ in os.walk(overlay_path):
            dirnames.sort()
            current_path = Path(current)
            if current_path.name == PKG_CONFIG_DIR_NAME or contains_file_with_ext(
                current_path, PC_EXTENSION
            ):
                found.append(current_path)
        return found

    def generate_pkg_config_file(self, overlay: Overlay) -> Path:
        """
        Write ``<work dir>/<overlay id>.pc`` listing the overlay's libraries.

        Raises:
            LibraryNameError: If a library file name yields no library name
            OverlayError: If the descriptor cannot be written
        """
        try:
            libraries = sorted(p for p in overlay.path.iterdir() if is_shared_library(p))
        except OSError as e:
            raise OverlayReadError(
                f"Couldn't read overlay directory '{overlay.path}': {e}"
            ) from e

        # libfoo.so, libfoo.so.1 and libfoo.so.1.2 all link as -lfoo
        libs = list(dict.fromkeys(lib_name(library) for library in libraries))
        pc_file = self.work_dir / f"{overlay.id}{PC_EXTENSION}"
        logger.debug(f"Generating pkg-config pc file {pc_file}")
        try:
            atomic_write(pc_file, render_pc_file(overlay.id, libs))
        except OSError as e:
            raise OverlayError(
                f"Couldn't generate pkg-config pc file {pc_file}: {e}"
            ) from e
        return pc_file

    def _reset_work_dir(self) -> None:
        try:
            shutil.rmtree(self.work_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            if self.work_dir.exists():
                logger.warning(
                    f"Couldn't cleanup overlay work directory {self.work_dir} ({e})"
                )
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OverlayError(
                f"Couldn't create overlay work directory {self.work_dir}: {e}"
            ) from e


__all__ = [
    "Overlay",
    "OverlayScope",
    "Overlayer",
    "dedup_overlays",
    "lib_name",
    "render_pc_file",
]
