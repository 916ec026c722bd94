"""
Project layout for Dinghy.

A project is the directory holding the build manifest (``Cargo.toml``). It
owns the ``target`` directory where shims and overlay descriptors are
generated, and knows how to copy its sources and test data into a bundle.

Usage:
    from dinghy.project import Project

    project = Project.find(Path.cwd())
    shims = project.shim_dir("aarch64-linux-android", "auto-android-aarch64")
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from dinghy.config.parser import DinghyConfig, TestDataConfig
from dinghy.core.exceptions import BundleError, ProjectNotFoundError
from dinghy.core.filesystem import DINGHYIGNORE_FILE, FilesystemError, copy_tree

logger = logging.getLogger(__name__)

MANIFEST_FILE = "Cargo.toml"
TARGET_DIR_NAME = "target"
TEST_DATA_DIR_NAME = "test_data"
HOST_DIR_NAME = "host"


class Project:
    """
    A buildable project.

    Attributes:
        root: Directory holding the manifest
        config: Configuration applying to the project
    """

    def __init__(self, root: Path, config: Optional[DinghyConfig] = None):
        self.root = Path(root)
        self.config = config or DinghyConfig()

    @classmethod
    def find(cls, start: Path, config: Optional[DinghyConfig] = None) -> "Project":
        """
        Find the nearest project containing start.

        Raises:
            ProjectNotFoundError: If no ancestor holds a manifest
        """
        start = Path(start).resolve()
        for directory in [start, *start.parents]:
            if (directory / MANIFEST_FILE).is_file():
                logger.debug(f"Project root: {directory}")
                return cls(directory, config)
        raise ProjectNotFoundError(
            f"Could not find {MANIFEST_FILE} in {start} or any parent directory"
        )

    @property
    def target_dir(self) -> Path:
        return self.root / TARGET_DIR_NAME

    @property
    def test_data(self) -> List[TestDataConfig]:
        return self.config.test_data

    def shim_dir(self, triple: Optional[str], platform_id: str) -> Path:
        """``target/<triple>/<platform id>``; ``host`` replaces a missing triple."""
        return self.target_dir / (triple or HOST_DIR_NAME) / platform_id

    def overlay_work_dir(self, triple: Optional[str], platform_id: str) -> Path:
        return self.shim_dir(triple, platform_id) / "overlay"

    def rec_copy(self, source: Path, destination: Path, copy_ignored: bool) -> int:
        """
        Incrementally copy source into destination.

        .gitignore rules apply unless copy_ignored is set; .dinghyignore files
        of the project and of source always apply.

        Returns:
            Number of files copied
        """
        ignore_files = []
        for candidate in (self.root / DINGHYIGNORE_FILE, Path(source) / DINGHYIGNORE_FILE):
            if candidate.is_file() and candidate not in ignore_files:
                ignore_files.append(candidate)
        try:
            return copy_tree(
                source,
                destination,
                use_gitignore=not copy_ignored,
                extra_ignore_files=ignore_files,
            )
        except FilesystemError as e:
            raise BundleError(f"Couldn't copy {source} to {destination}: {e}") from e

    def copy_test_data(self, bundle_dir: Path) -> Path:
        """
        Copy every configured test data entry into ``<bundle_dir>/test_data``.

        Missing sources are reported and skipped.
        """
        test_data_dir = Path(bundle_dir) / TEST_DATA_DIR_NAME
        try:
            test_data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BundleError(f"Couldn't create {test_data_dir}: {e}") from e

        for entry in self.test_data:
            source = entry.source_path()
            target = test_data_dir / entry.target
            if source.is_dir():
                logger.debug(f"Copying test data directory {source} to {target}")
                self.rec_copy(source, target, entry.copy_git_ignored)
            elif source.is_file():
                logger.debug(f"Copying test data file {source} to {target}")
                try:
                    shutil.copy2(source, target)
                except OSError as e:
                    raise BundleError(f"Couldn't copy {source} to {target}: {e}") from e
            else:
                logger.warning(
                    f"Configured test data {entry.id} doesn't exist (path: {source})"
                )
        return test_data_dir

    def __repr__(self) -> str:
        return f"Project({self.root})"
