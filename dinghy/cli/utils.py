"""
Shared utilities for CLI commands.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from dinghy.config.parser import DinghyConfig, load_config
from dinghy.core.exceptions import ConfigError
from dinghy.orchestrator import Dinghy
from dinghy.project import Project

logger = logging.getLogger(__name__)


def resolve_project_root(path: Optional[Path] = None) -> Path:
    """Directory the project is searched from (current directory by default)."""
    return (path or Path.cwd()).resolve()


def load_context(args) -> Tuple[DinghyConfig, Project]:
    """
    Find the project and load its configuration.

    Raises:
        ProjectNotFoundError: If no project encloses the start directory
        ConfigError: If a configuration file is invalid
    """
    project = Project.find(resolve_project_root(args.project_root))
    project.config = load_config(project.root, explicit=args.config)
    for config_file in project.config.files:
        logger.debug(f"Using configuration {config_file}")
    return project.config, project


def probe(args) -> Tuple[Dinghy, Project]:
    config, project = load_context(args)
    return Dinghy.probe(config, project), project


def parse_env_args(values: Iterable[str]) -> Dict[str, str]:
    """
    Parse ``KEY=VALUE`` arguments.

    Example:
        >>> parse_env_args(["RUST_LOG=debug", "A=b=c"])
        {'RUST_LOG': 'debug', 'A': 'b=c'}

    Raises:
        ConfigError: If an argument has no '=' or an empty key
    """
    envs = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise ConfigError(f"Invalid environment variable '{value}', expected KEY=VALUE")
        envs[key] = val
    return envs


def print_table(rows: Iterable[Tuple[str, str]], file=None) -> None:
    """Print two aligned columns."""
    rows = list(rows)
    file = file or sys.stdout
    if not rows:
        return
    width = max(len(left) for left, _ in rows)
    for left, right in rows:
        print(f"{left.ljust(width)}  {right}", file=file)
