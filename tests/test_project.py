"""
Tests for project discovery and bundle copies.
"""

import logging

import pytest

from dinghy.config.parser import DinghyConfig, TestDataConfig as DataEntry
from dinghy.core.exceptions import ProjectNotFoundError
from dinghy.project import Project


class TestFind:
    """Test Project.find."""

    def test_from_root(self, project_dir):
        assert Project.find(project_dir).root == project_dir.resolve()

    def test_from_subdirectory(self, project_dir):
        found = Project.find(project_dir / "src")
        assert found.root == project_dir.resolve()

    def test_not_found(self, tmp_path):
        with pytest.raises(ProjectNotFoundError, match="Cargo.toml"):
            Project.find(tmp_path)

    def test_keeps_config(self, project_dir):
        config = DinghyConfig()
        assert Project.find(project_dir, config).config is config


class TestLayout:
    """Test generated directory locations."""

    def test_shim_dir(self, project):
        assert project.shim_dir("aarch64-linux-android", "android") == (
            project.root / "target" / "aarch64-linux-android" / "android"
        )

    def test_host_shim_dir(self, project):
        assert project.shim_dir(None, "host") == project.root / "target" / "host" / "host"

    def test_overlay_work_dir(self, project):
        assert project.overlay_work_dir("x", "pi") == project.shim_dir("x", "pi") / "overlay"


class TestRecCopy:
    """Test source copies."""

    def test_copies_sources_not_target(self, project, tmp_path):
        (project.target_dir / "debug").mkdir(parents=True)
        (project.target_dir / "debug" / "app").write_text("bin")
        dest = tmp_path / "dest"

        project.rec_copy(project.root, dest, copy_ignored=False)

        assert (dest / "Cargo.toml").exists()
        assert (dest / "src" / "main.rs").exists()
        assert not (dest / "target").exists()

    def test_dinghyignore_always_applies(self, project, tmp_path):
        (project.root / ".dinghyignore").write_text("src/\n")
        dest = tmp_path / "dest"

        project.rec_copy(project.root, dest, copy_ignored=True)

        assert not (dest / "src").exists()
        assert (dest / "Cargo.toml").exists()

    def test_copy_ignored_bypasses_gitignore(self, project, tmp_path):
        (project.root / ".gitignore").write_text("*.rs\n")

        project.rec_copy(project.root, tmp_path / "without", copy_ignored=False)
        project.rec_copy(project.root, tmp_path / "with", copy_ignored=True)

        assert not (tmp_path / "without" / "src" / "main.rs").exists()
        assert (tmp_path / "with" / "src" / "main.rs").exists()


class TestCopyTestData:
    """Test test data staging."""

    def test_directory_and_file(self, project_dir, tmp_path):
        config_file = project_dir / ".dinghy.yml"
        (project_dir / "fixtures").mkdir()
        (project_dir / "fixtures" / "a.txt").write_text("a")
        (project_dir / "single.bin").write_text("bin")
        config = DinghyConfig(
            test_data=[
                DataEntry("fixtures", "fixtures", config_file),
                DataEntry("single", "single.bin", config_file),
            ]
        )
        bundle_dir = tmp_path / "bundle"

        test_data_dir = Project(project_dir, config).copy_test_data(bundle_dir)

        assert test_data_dir == bundle_dir / "test_data"
        assert (test_data_dir / "fixtures" / "a.txt").read_text() == "a"
        assert (test_data_dir / "single").read_text() == "bin"

    def test_missing_source_warns(self, project_dir, tmp_path, caplog):
        config = DinghyConfig(
            test_data=[DataEntry("gone", "nowhere", project_dir / ".dinghy.yml")]
        )

        with caplog.at_level(logging.WARNING):
            test_data_dir = Project(project_dir, config).copy_test_data(tmp_path / "b")

        assert test_data_dir.is_dir()
        assert not (test_data_dir / "gone").exists()
        assert "Configured test data gone doesn't exist" in caplog.text

    def test_no_entries(self, project, tmp_path):
        assert project.copy_test_data(tmp_path / "b").is_dir()
