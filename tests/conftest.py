"""Shared pytest fixtures for themebundler tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest


def write(path: Path, content: str) -> Path:
    """Write *content* to *path*, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def write_config(theme_dir: Path, config: dict) -> Path:
    return write(theme_dir / f"{theme_dir.name}.config.json", json.dumps(config))


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project with several themes, shared components and a common theme.

    Layout::

        themes/default   includes vars/colors, main/main
        themes/dark      includes vars
        themes/mobile    includes vars
        themes/common    includes vars (shared custom properties)
        themes/scss      extension scss, includes vars, button
        themes/empty     config only
        components/      button.<theme>.css fragments
        pages/           home.default.css
    """
    themes = tmp_path / "themes"

    default = themes / "default"
    write_config(default, {"includes": ["vars/colors", "main/main"]})
    write(default / "vars" / "colors.css", ":root{--grey-100:#eee;}")
    write(default / "main" / "main.css", ".main{display:block;}")
    write(default / "fonts" / "font.woff2", "fake-font")
    write(default / "images" / "logo.svg", "<svg></svg>")

    dark = themes / "dark"
    write_config(dark, {"includes": ["vars"]})
    write(dark / "vars.css", ":root{--bg:#000;}")

    mobile = themes / "mobile"
    write_config(mobile, {"includes": ["vars"]})
    write(mobile / "vars.css", ":root{--gutter:4px;}")

    common = themes / "common"
    write_config(common, {"includes": ["vars"]})
    write(common / "vars.css", ":root{--x:1;}")

    scss = themes / "scss"
    write_config(scss, {"extension": "scss", "includes": ["vars", "button"]})
    write(
        scss / "vars.scss",
        "$primary-color: #3498db;\n:root { --primary-color: #{$primary-color}; }\n",
    )
    write(scss / "button.scss", ".scss_button { color: $primary-color; }\n")

    write_config(themes / "empty", {})

    components = tmp_path / "components"
    write(components / "button" / "button.default.css", ".button{color:red;}")
    write(components / "button" / "button.dark.css", ".button{color:white;}")
    write(components / "button" / "button.mobile.css", ".button{padding:0;}")
    write(components / "node_modules" / "lib" / "x.default.css", ".vendored{color:blue;}")

    write(tmp_path / "pages" / "home.default.css", ".home{margin:0;}")
    return tmp_path


@pytest.fixture
def themes_dir(project_dir: Path) -> Path:
    return project_dir / "themes"


@pytest.fixture
def default_config(project_dir: Path) -> dict:
    """Overrides for the default theme with component patterns and an export dir."""
    return {
        "path": project_dir / "themes" / "default",
        "patterns": [str(project_dir / "components")],
        "exportPath": project_dir / "dist",
    }


@pytest.fixture
def write_file() -> Callable[[Path, str], Path]:
    """The ``write`` helper, for tests that build their own trees."""
    return write
