from __future__ import annotations

from pathlib import Path

import pytest

from buildtool.config import CliOverrides, ConfigError, load_effective_config


def _write(tmp_path: Path, *lines: str) -> None:
    (tmp_path / "buildtool.toml").write_text("\n".join(lines), encoding="utf-8")


def test_invalid_boolean_raises_value_error(tmp_path: Path) -> None:
    _write(tmp_path, "[build]", 'source_map = "yes"')

    with pytest.raises(ValueError, match="build.source_map"):
        load_effective_config(tmp_path)


def test_invalid_section_type_raises_value_error(tmp_path: Path) -> None:
    _write(tmp_path, 'watch = "fast"')

    with pytest.raises(ConfigError, match="section 'watch'"):
        load_effective_config(tmp_path)


def test_debounce_must_be_positive_and_capped(tmp_path: Path) -> None:
    _write(tmp_path, "[watch]", "debounce_ms = 0")
    with pytest.raises(ConfigError, match="watch.debounce_ms"):
        load_effective_config(tmp_path)

    _write(tmp_path, "[watch]", "debounce_ms = 60000")
    with pytest.raises(ConfigError, match="<= 10000"):
        load_effective_config(tmp_path)


def test_engine_command_must_be_list_of_strings(tmp_path: Path) -> None:
    _write(tmp_path, "[engines]", 'compiler = ["node", 1]')

    with pytest.raises(ConfigError, match="engines.compiler"):
        load_effective_config(tmp_path)


def test_lib_must_be_a_list(tmp_path: Path) -> None:
    _write(tmp_path, "[compiler]", 'lib = "dom"')

    with pytest.raises(ConfigError, match="compiler.lib"):
        load_effective_config(tmp_path)


def test_invalid_cli_debounce_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="overrides.debounce_ms"):
        load_effective_config(tmp_path, CliOverrides(debounce_ms=-5))
