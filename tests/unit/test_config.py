"""Tests for theme configuration loading and layered resolution."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from themebundler.core.config import (
    DEFAULT_THEME_CONFIG,
    BuildMode,
    CollectionConfig,
    ThemeConfig,
    find_config_file,
    load_theme_file_config,
    normalize_config_keys,
    resolve_theme_config,
    to_snake_case,
)


class TestKeyNormalization:
    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("baseTheme", "base_theme"),
            ("exportPath", "export_path"),
            ("commonThemeFile", "common_theme_file"),
            ("includes", "includes"),
            ("export_path", "export_path"),
        ],
    )
    def test_to_snake_case(self, key: str, expected: str) -> None:
        assert to_snake_case(key) == expected

    def test_normalize_returns_new_mapping(self) -> None:
        original = {"baseTheme": "../base"}
        normalized = normalize_config_keys(original)
        assert normalized == {"base_theme": "../base"}
        assert original == {"baseTheme": "../base"}


class TestThemeConfig:
    def test_default_targets(self, tmp_path: Path) -> None:
        config = ThemeConfig(name="dark", path=tmp_path)
        assert config.target_file == tmp_path / "dark.bundled.css"
        assert config.minified_target_file == tmp_path / "dark.min.css"
        assert not config.requires_preprocessing

    def test_scss_target_keeps_extension(self, tmp_path: Path) -> None:
        config = ThemeConfig(name="brand", path=tmp_path, extension="scss")
        assert config.target_file == tmp_path / "brand.bundled.scss"
        assert config.minified_target_file == tmp_path / "brand.min.css"
        assert config.requires_preprocessing

    def test_extension_is_normalized(self, tmp_path: Path) -> None:
        config = ThemeConfig.model_validate({"name": "x", "path": tmp_path, "extension": ".SCSS"})
        assert config.extension == "scss"

    def test_explicit_targets_win(self, tmp_path: Path) -> None:
        config = ThemeConfig.model_validate(
            {
                "name": "x",
                "path": tmp_path,
                "target": tmp_path / "out" / "x.css",
                "minifiedTarget": tmp_path / "out" / "x.min.css",
            }
        )
        assert config.target_file == tmp_path / "out" / "x.css"
        assert config.minified_target_file == tmp_path / "out" / "x.min.css"

    def test_is_frozen(self, tmp_path: Path) -> None:
        config = ThemeConfig(name="x", path=tmp_path)
        with pytest.raises(ValidationError):
            config.name = "y"  # type: ignore[misc]

    def test_production_mode(self, tmp_path: Path) -> None:
        config = ThemeConfig(name="x", path=tmp_path, mode="production")
        assert config.mode is BuildMode.PRODUCTION
        assert config.is_production

    def test_negative_settle_delay_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError):
            ThemeConfig(name="x", path=tmp_path, settle_delay=-1)


class TestResolveThemeConfig:
    def test_name_derived_from_path(self, tmp_path: Path) -> None:
        config = resolve_theme_config({"path": tmp_path / "dark"})
        assert config.name == "dark"
        assert config.extension == "css"

    def test_overrides_beat_file_config_beat_defaults(self, tmp_path: Path) -> None:
        config = resolve_theme_config(
            overrides={"path": tmp_path, "minify": True},
            file_config={"minify": False, "includes": ["vars"], "extension": "scss"},
            defaults={**DEFAULT_THEME_CONFIG, "extension": "less", "verbose": True},
        )
        assert config.minify is True
        assert config.includes == ("vars",)
        assert config.extension == "scss"
        assert config.verbose is True

    def test_none_never_overrides(self, tmp_path: Path) -> None:
        config = resolve_theme_config(
            overrides={"path": tmp_path, "exportPath": None},
            file_config={"export_path": tmp_path / "dist"},
        )
        assert config.export_path == tmp_path / "dist"

    def test_inputs_are_not_mutated(self, tmp_path: Path) -> None:
        overrides = {"path": tmp_path, "patterns": ["components"]}
        file_config = {"includes": ["vars"]}
        resolve_theme_config(overrides, file_config)
        assert overrides == {"path": tmp_path, "patterns": ["components"]}
        assert file_config == {"includes": ["vars"]}


class TestLoadThemeFileConfig:
    def test_loads_json(self, themes_dir: Path) -> None:
        data = load_theme_file_config(themes_dir / "default", "default")
        assert data == {"includes": ["vars/colors", "main/main"]}

    def test_loads_yaml(self, tmp_path: Path, write_file) -> None:
        theme = tmp_path / "brand"
        write_file(theme / "brand.config.yaml", "extension: scss\nincludes:\n  - vars\n")
        assert find_config_file(theme, "brand") == theme / "brand.config.yaml"
        assert load_theme_file_config(theme, "brand") == {"extension": "scss", "includes": ["vars"]}

    def test_json_takes_precedence_over_yaml(self, tmp_path: Path, write_file) -> None:
        theme = tmp_path / "brand"
        write_file(theme / "brand.config.json", '{"includes": ["a"]}')
        write_file(theme / "brand.config.yaml", "includes: [b]\n")
        assert load_theme_file_config(theme, "brand") == {"includes": ["a"]}

    def test_camel_case_keys_and_relative_paths(self, tmp_path: Path, write_file) -> None:
        theme = tmp_path / "child"
        config = '{"baseTheme": "../base", "exportPath": "/abs/dist"}'
        write_file(theme / "child.config.json", config)
        data = load_theme_file_config(theme, "child")
        assert data["base_theme"] == theme / "../base"
        assert data["export_path"] == Path("/abs/dist")

    def test_unknown_keys_dropped(self, tmp_path: Path, write_file) -> None:
        theme = tmp_path / "x"
        write_file(theme / "x.config.json", '{"includes": [], "name": "other", "colour": "red"}')
        assert load_theme_file_config(theme, "x") == {"includes": []}

    def test_missing_file_logs_error(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.ERROR):
            data = load_theme_file_config(tmp_path, "ghost")
        assert data == {}
        assert "Config file not found for theme 'ghost'" in caplog.text

    def test_invalid_json_logs_error(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture, write_file
    ) -> None:
        write_file(tmp_path / "broken.config.json", "{not json")
        with caplog.at_level(logging.ERROR):
            data = load_theme_file_config(tmp_path, "broken")
        assert data == {}
        assert "Failed to load config file for theme 'broken'" in caplog.text

    def test_non_mapping_logs_error(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture, write_file
    ) -> None:
        write_file(tmp_path / "list.config.json", "[1, 2]")
        with caplog.at_level(logging.ERROR):
            assert load_theme_file_config(tmp_path, "list") == {}
        assert "expected an object" in caplog.text

    def test_empty_yaml_is_empty_config(self, tmp_path: Path, write_file) -> None:
        write_file(tmp_path / "blank.config.yml", "")
        assert load_theme_file_config(tmp_path, "blank") == {}


class TestCollectionConfig:
    def test_string_themes_become_entries(self, tmp_path: Path) -> None:
        config = CollectionConfig.model_validate({"themes": [str(tmp_path / "dark")]})
        assert config.themes == ({"path": str(tmp_path / "dark")},)

    def test_theme_entry_keys_normalized(self, tmp_path: Path) -> None:
        config = CollectionConfig.model_validate(
            {"themes": [{"path": tmp_path, "baseTheme": tmp_path / "base"}], "exportPath": tmp_path}
        )
        assert config.themes[0]["base_theme"] == tmp_path / "base"
        assert config.export_path == tmp_path

    def test_defaults(self) -> None:
        config = CollectionConfig()
        assert config.themes == ()
        assert config.mode is BuildMode.DEVELOPMENT
        assert config.minify is False
        assert config.watch_paths == ()
