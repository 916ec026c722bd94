"""
File system utilities for Dinghy.

This module provides the file operations the bundling and shimming code
relies on:
- Atomic writes (shim scripts, generated pkg-config files)
- Safe directory removal
- Incremental tree copies honouring gitignore-style ignore files

All operations raise FilesystemError with the offending path in the message.
"""

import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Tuple, Union

import pathspec

from .exceptions import DinghyError

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"

GITIGNORE_FILE = ".gitignore"
DINGHYIGNORE_FILE = ".dinghyignore"

# Build output directories never travel to a device
SKIPPED_SEGMENT = "target"


class FilesystemError(DinghyError):
    """Base exception for filesystem operations."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to parent.

    Example:
        >>> is_relative_to(Path('/a/b/c'), Path('/a'))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def file_has_ext(path: Path, ext: str) -> bool:
    """Check that path is a regular file whose name ends with ext."""
    return path.is_file() and path.name.endswith(ext)


def contains_file_with_ext(directory: Path, ext: str) -> bool:
    """Check whether directory directly contains a file ending with ext."""
    if not directory.is_dir():
        return False
    try:
        return any(file_has_ext(entry, ext) for entry in directory.iterdir())
    except OSError:
        return False


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    Example:
        >>> atomic_write('shim.sh', '#!/bin/sh\\n')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def make_executable(path: Path) -> None:
    """Add execute permission bits for everyone (no-op on Windows)."""
    if IS_WINDOWS:
        return
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists (idempotent).

    Example:
        >>> ensure_directory('/tmp/dinghy/bundle')
        PosixPath('/tmp/dinghy/bundle')
    """
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Couldn't create directory {path}: {e}") from e
    return path


# ============================================================================
# Ignore Rules
# ============================================================================


class IgnoreRules:
    """
    Gitignore-style ignore rules collected while walking a tree.

    Each rule set is anchored at the directory holding the ignore file, so
    patterns in nested .gitignore files apply below that directory only.
    """

    def __init__(self):
        self._specs: List[Tuple[PurePosixPath, pathspec.PathSpec]] = []

    def add_file(self, ignore_file: Path, base: PurePosixPath = PurePosixPath(".")):
        """Load patterns from ignore_file, anchored at base (relative to root)."""
        if not ignore_file.is_file():
            return
        try:
            lines = ignore_file.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning(f"Couldn't read ignore file {ignore_file}: {e}")
            return
        self.add_lines(lines, base)

    def add_lines(
        self, lines: Iterable[str], base: PurePosixPath = PurePosixPath(".")
    ) -> None:
        spec = pathspec.GitIgnoreSpec.from_lines(lines)
        self._specs.append((base, spec))

    def is_ignored(self, rel_path: PurePosixPath, is_dir: bool) -> bool:
        for base, spec in self._specs:
            if str(base) == ".":
                sub = rel_path
            else:
                try:
                    sub = rel_path.relative_to(base)
                except ValueError:
                    continue
            candidate = str(sub) + ("/" if is_dir else "")
            if spec.match_file(candidate):
                return True
        return False

    def __len__(self) -> int:
        return len(self._specs)


# ============================================================================
# Incremental Copy
# ============================================================================


def needs_copy(source: Path, destination: Path) -> bool:
    """
    Decide whether destination is stale with respect to source.

    A file is up to date when it exists with the same size and is not older
    than the source.
    """
    if not destination.exists():
        return True
    src_stat = source.stat()
    dst_stat = destination.stat()
    return (
        src_stat.st_size != dst_stat.st_size
        or dst_stat.st_mtime < src_stat.st_mtime
    )


def copy_tree(
    source: Union[str, Path],
    destination: Union[str, Path],
    use_gitignore: bool = True,
    extra_ignore_files: Iterable[Path] = (),
) -> int:
    """
    Incrementally copy a directory tree.

    Hidden entries and any path with a ``target`` segment are skipped, as are
    entries matched by .gitignore files (when use_gitignore is set) and by the
    extra ignore files, which apply from the root of source.

    Args:
        source: Source directory
        destination: Destination directory
        use_gitignore: Honour .gitignore files found in the tree
        extra_ignore_files: Additional ignore files anchored at source

    Returns:
        Number of files actually copied

    Raises:
        FilesystemError: If source is missing or a copy fails
    """
    source = Path(source)
    destination = Path(destination)

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    rules = IgnoreRules()
    for ignore_file in extra_ignore_files:
        rules.add_file(Path(ignore_file))

    ensure_directory(destination)
    copied = 0

    for current, dirnames, filenames in os.walk(source):
        current_path = Path(current)
        rel_dir = PurePosixPath(current_path.relative_to(source).as_posix())

        if use_gitignore:
            rules.add_file(current_path / GITIGNORE_FILE, rel_dir)

        kept_dirs = []
        for dirname in sorted(dirnames):
            rel = rel_dir / dirname
            if _is_skipped(dirname) or rules.is_ignored(rel, is_dir=True):
                logger.debug(f"Skipping directory {rel}")
                continue
            target = destination / rel
            try:
                if target.exists() and not target.is_dir():
                    target.unlink()
                target.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemError(f"Couldn't create directory {target}: {e}") from e
            kept_dirs.append(dirname)
        dirnames[:] = kept_dirs

        for filename in sorted(filenames):
            rel = rel_dir / filename
            if _is_skipped(filename) or rules.is_ignored(rel, is_dir=False):
                continue
            src_file = current_path / filename
            target = destination / rel
            try:
                if target.exists() and not target.is_file():
                    shutil.rmtree(target)
                if needs_copy(src_file, target):
                    shutil.copy2(src_file, target)
                    copied += 1
            except OSError as e:
                raise FilesystemError(
                    f"Couldn't copy {src_file} to {target}: {e}"
                ) from e

    logger.debug(f"Copied {copied} file(s) from {source} to {destination}")
    return copied


def _is_skipped(name: str) -> bool:
    return name.startswith(".") or name == SKIPPED_SEGMENT


__all__ = [
    "FilesystemError",
    "IgnoreRules",
    "is_relative_to",
    "file_has_ext",
    "contains_file_with_ext",
    "atomic_write",
    "make_executable",
    "safe_rmtree",
    "ensure_directory",
    "needs_copy",
    "copy_tree",
]
