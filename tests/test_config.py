"""Tests for ignore and favorites configuration."""

import os
from unittest.mock import patch

from nmclean.config import (
    FAVORITES_FILENAME,
    IGNORE_FILENAME,
    Config,
    load_favorites,
    load_ignore_patterns,
    read_list_file,
)


class TestConfigFromEnvironment:
    def test_default_locations(self, tmp_path):
        cwd = tmp_path.resolve() / "work"
        home = tmp_path.resolve() / "home"
        cwd.mkdir()
        home.mkdir()

        config = Config.from_environment(cwd=cwd, home=home)

        assert config.ignore_files == [cwd / IGNORE_FILENAME, home / IGNORE_FILENAME]
        assert config.favorites_file == home / FAVORITES_FILENAME

    def test_cwd_is_home(self, tmp_path):
        config = Config.from_environment(cwd=tmp_path, home=tmp_path)
        assert config.ignore_files == [tmp_path.resolve() / IGNORE_FILENAME]

    def test_empty_config(self):
        assert load_ignore_patterns(Config()) == []
        assert load_favorites(Config()) == set()


class TestReadListFile:
    def test_skips_comments_and_blanks(self, tmp_path):
        path = tmp_path / "list"
        path.write_text("# header\n\n  **/legacy/**  \n#another\n/tmp/x\n")
        assert read_list_file(path) == ["**/legacy/**", "/tmp/x"]

    def test_missing_file(self, tmp_path):
        assert read_list_file(tmp_path / "missing") == []

    def test_unreadable_file_warns(self, tmp_path, caplog):
        path = tmp_path / "list"
        path.write_text("x\n")
        with patch("builtins.open", side_effect=PermissionError(13, "Permission denied")):
            assert read_list_file(path) == []
        assert "Could not read" in caplog.text


class TestLoadIgnorePatterns:
    def test_merges_and_dedupes(self, tmp_path):
        first = tmp_path / "a"
        second = tmp_path / "b"
        first.write_text("**/archive/**\n**/tmp/**\n")
        second.write_text("**/tmp/**\n**/vendor/**\n")

        config = Config(ignore_files=[first, second])

        assert load_ignore_patterns(config) == ["**/archive/**", "**/tmp/**", "**/vendor/**"]


class TestLoadFavorites:
    def test_expands_paths(self, tmp_path):
        favorites = tmp_path / FAVORITES_FILENAME
        favorites.write_text("~/projects/keep\n/abs/path\n")

        result = load_favorites(Config(favorites_file=favorites))

        assert result == {
            os.path.join(os.path.expanduser("~"), "projects", "keep"),
            os.path.abspath("/abs/path"),
        }
