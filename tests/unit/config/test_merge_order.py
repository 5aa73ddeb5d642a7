from __future__ import annotations

from pathlib import Path

from buildtool.config import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_DOC_BASE_URL,
    CliOverrides,
    load_effective_config,
)


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_effective_config(tmp_path)

    assert config.workspace == tmp_path.resolve()
    assert config.options.source_map is False
    assert config.options.pure_annotations is True
    assert config.doc_base_url == DEFAULT_DOC_BASE_URL
    assert config.debounce_ms == DEFAULT_DEBOUNCE_MS
    assert config.debounce_seconds == DEFAULT_DEBOUNCE_MS / 1000
    assert config.engines.compiler == ()
    assert config.event_log is None


def test_merge_order_defaults_then_workspace_then_cli(tmp_path: Path) -> None:
    (tmp_path / "buildtool.toml").write_text(
        "\n".join(
            [
                "[build]",
                "source_map = true",
                "pure_annotations = false",
                "",
                "[compiler]",
                'target = "es2020"',
                'lib = ["es2020", "dom"]',
                "",
                "[docs]",
                'base_url = "https://docs.example.test/"',
                "",
                "[watch]",
                "debounce_ms = 250",
                "",
                "[engines]",
                'compiler = ["node", "engines/tsc.mjs"]',
                'bundler = ["node", "engines/rollup.mjs"]',
                "",
                "[log]",
                'event_log = ".buildtool/events.jsonl"',
            ]
        ),
        encoding="utf-8",
    )
    overrides = CliOverrides(pure_annotations=True, debounce_ms=20)

    config = load_effective_config(tmp_path, overrides)

    assert config.options.source_map is True
    assert config.options.pure_annotations is True
    assert config.compiler.target == "es2020"
    assert config.compiler.lib == ("es2020", "dom")
    assert config.compiler.module == "es2020"
    assert config.doc_base_url == "https://docs.example.test/"
    assert config.debounce_ms == 20
    assert config.engines.compiler == ("node", "engines/tsc.mjs")
    assert config.engines.bundler == ("node", "engines/rollup.mjs")
    assert config.event_log == (tmp_path / ".buildtool" / "events.jsonl").resolve()


def test_event_log_override_has_highest_precedence(tmp_path: Path) -> None:
    (tmp_path / "buildtool.toml").write_text('[log]\nevent_log = "a.jsonl"\n', encoding="utf-8")
    custom = tmp_path / "custom" / "events.jsonl"

    config = load_effective_config(tmp_path, CliOverrides(event_log=custom))

    assert config.event_log == custom.resolve()


def test_public_dict_is_serializable_snapshot(tmp_path: Path) -> None:
    snapshot = load_effective_config(tmp_path).to_public_dict()

    assert snapshot["build"] == {"source_map": False, "pure_annotations": True}
    assert snapshot["compiler"]["lib"] == ["es6", "scripthost", "dom"]
    assert snapshot["watch"] == {"debounce_ms": DEFAULT_DEBOUNCE_MS}
    assert snapshot["log"] == {"event_log": None}
