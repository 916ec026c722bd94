"""
Pytest configuration and shared fixtures for Dinghy tests.
"""

import json
from pathlib import Path
from typing import List
from unittest.mock import MagicMock

import pytest

from dinghy.backends.base import BuildBackend, BuildResult, Runnable
from dinghy.config.parser import DinghyConfig
from dinghy.project import Project


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require real adb/ssh/cargo",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))

    return fake_home


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Minimal cargo project with one source file."""
    root = tmp_path / "workspace" / "app"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text('[package]\nname = "app"\nversion = "0.1.0"\n')
    (root / "src" / "main.rs").write_text('fn main() { println!("hello"); }\n')
    return root


@pytest.fixture
def project(project_dir: Path) -> Project:
    return Project(project_dir, DinghyConfig())


@pytest.fixture
def gcc_toolchain(tmp_path: Path) -> Path:
    """Fake arm toolchain directory with gcc, binutils and a nested sysroot."""
    root = tmp_path / "toolchains" / "arm"
    bin_dir = root / "bin"
    bin_dir.mkdir(parents=True)
    for tool in ("gcc", "ar", "as", "strip", "c++"):
        exe = bin_dir / f"arm-linux-gnueabihf-{tool}"
        exe.write_text("#!/bin/sh\n")
        exe.chmod(0o755)
    sysroot = root / "arm-linux-gnueabihf" / "sysroot"
    (sysroot / "usr" / "lib" / "pkgconfig").mkdir(parents=True)
    return root


@pytest.fixture
def built_runnable(project_dir: Path) -> Runnable:
    """An executable as the build tool would leave it under target/."""
    out = project_dir / "target" / "debug"
    out.mkdir(parents=True)
    exe = out / "app"
    exe.write_text("binary")
    exe.chmod(0o755)
    return Runnable(id="app", exe=exe, source=project_dir)


@pytest.fixture
def dynamic_library(tmp_path: Path) -> Path:
    lib_dir = tmp_path / "native"
    lib_dir.mkdir()
    lib = lib_dir / "libnative.so"
    lib.write_text("shared object")
    return lib


class FakeBackend(BuildBackend):
    """Records build calls and returns a canned result."""

    def __init__(self, result: BuildResult = None):
        self.result = result or BuildResult()
        self.calls: List[dict] = []

    def build(self, project, triple, build_args, environ, excluded_lib_dirs=()):
        self.calls.append(
            {
                "project": project,
                "triple": triple,
                "build_args": build_args,
                "environ": environ,
                "excluded_lib_dirs": list(excluded_lib_dirs),
            }
        )
        return self.result


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    """Stand-in for subprocess.CompletedProcess."""
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


@pytest.fixture
def make_completed():
    return completed


@pytest.fixture
def cargo_messages():
    """Render cargo JSON messages as the stdout of ``--message-format=json``."""

    def render(*messages) -> str:
        return "\n".join(json.dumps(m) for m in messages) + "\n"

    return render
