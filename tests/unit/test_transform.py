"""Tests for SCSS compilation and CSS minification."""

from __future__ import annotations

from pathlib import Path

import pytest

from themebundler.core.errors import CompilationError, MinificationError
from themebundler.core.transform import compile_scss, has_sass_support, minify_css


class TestHasSassSupport:
    def test_installed_package(self) -> None:
        assert has_sass_support() is True

    def test_missing_package(self) -> None:
        assert has_sass_support("definitely_not_a_real_package_xyz") is False


class TestCompileScss:
    def test_compiles_variables_and_writes_target(self, tmp_path: Path) -> None:
        source = tmp_path / "brand.bundled.scss"
        source.write_text("$primary: #3498db;\n.button { color: $primary; }\n")
        target = tmp_path / "brand.bundled.css"

        css = compile_scss(source, target, "brand")

        assert "color: #3498db" in css
        assert target.read_text() == css

    def test_compile_error_carries_context(self, tmp_path: Path) -> None:
        source = tmp_path / "broken.bundled.scss"
        source.write_text(".button { color: $undefined-variable; }\n")

        with pytest.raises(CompilationError) as exc_info:
            compile_scss(source, tmp_path / "broken.bundled.css", "broken")

        assert exc_info.value.message.startswith("Failed to compile SCSS:")
        assert exc_info.value.context is not None
        assert exc_info.value.context.theme == "broken"
        assert not (tmp_path / "broken.bundled.css").exists()

    def test_missing_source(self, tmp_path: Path) -> None:
        with pytest.raises(CompilationError):
            compile_scss(tmp_path / "missing.scss", tmp_path / "missing.css", "missing")


class TestMinifyCss:
    def test_strips_whitespace_and_comments(self) -> None:
        css = (
            "\n/*\n File: /themes/dark/vars.css\n*/\n"
            ":root {\n  --bg: #000;\n}\n\n.a {\n  display: block;\n}\n"
        )
        minified = minify_css(css)
        assert "File:" not in minified
        assert "--bg:" in minified
        assert ".a{display:block" in minified
        assert "\n\n" not in minified

    def test_math_functions_pass_through(self) -> None:
        minified = minify_css(".a {\n  width: max(10px, 2vw);\n  height: min(50%, 300px);\n}\n")
        assert "max(10px" in minified and "2vw)" in minified
        assert "min(50%" in minified and "300px)" in minified

    def test_empty_custom_property(self) -> None:
        minified = minify_css(":root {\n  --empty:;\n  --bg: #000;\n}\n")
        assert "--empty:" in minified
        assert "--bg:" in minified

    def test_keeps_bang_comments(self) -> None:
        minified = minify_css("/*! license */\n/* note */\n.a { color: red; }\n")
        assert "/*! license */" in minified
        assert "note" not in minified

    def test_non_text_input_raises(self) -> None:
        with pytest.raises(MinificationError) as exc_info:
            minify_css(None, theme="dark")  # type: ignore[arg-type]
        assert exc_info.value.context is not None
        assert exc_info.value.context.theme == "dark"
