"""Tests for configuration loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from codex_explain.config import (
    DEFAULT_BASE_URL,
    DEFAULT_EXCLUDE,
    DEFAULT_INCLUDE,
    DEFAULT_MODEL,
    ConfigOverrides,
    load_config,
    read_env_file,
    resolve_env_reference,
)
from codex_explain.errors import ConfigError


def _write_config(root: Path, data: dict) -> Path:
    path = root / ".explainrc.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestDefaults:
    def test_without_any_source(self, tmp_path: Path) -> None:
        config, path = load_config(tmp_path, environ={})

        assert path == (tmp_path / ".explainrc.json").resolve()
        assert config.include == DEFAULT_INCLUDE
        assert config.exclude == DEFAULT_EXCLUDE
        assert config.output == "explain-output"
        assert config.llm.base_url == DEFAULT_BASE_URL
        assert config.llm.model == DEFAULT_MODEL
        assert config.llm.api_key == ""
        assert config.graph.max_nodes == 50
        assert config.repo_url is None


class TestPrecedence:
    def test_file_values(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            {
                "repoUrl": "https://github.com/acme/shop",
                "include": ["src/**/*.ts"],
                "exclude": [],
                "output": "docs/explain",
                "llm": {"baseUrl": "http://localhost:8080/v1", "model": "local"},
                "graph": {"maxNodes": 5},
            },
        )

        config, _ = load_config(tmp_path, environ={})

        assert config.repo_url == "https://github.com/acme/shop"
        assert config.include == ["src/**/*.ts"]
        assert config.exclude == []
        assert config.output == "docs/explain"
        assert config.llm.base_url == "http://localhost:8080/v1"
        assert config.llm.model == "local"
        assert config.graph.max_nodes == 5

    def test_environment_beats_file(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"llm": {"model": "from-file", "apiKey": "file-key"}})

        config, _ = load_config(
            tmp_path,
            environ={"EXPLAIN_MODEL": "from-env", "EXPLAIN_API_KEY": "env-key", "EXPLAIN_BASE_URL": "http://env"},
        )

        assert config.llm.model == "from-env"
        assert config.llm.api_key == "env-key"
        assert config.llm.base_url == "http://env"

    def test_cli_beats_environment(self, tmp_path: Path) -> None:
        overrides = ConfigOverrides(model="from-cli", api_key="cli-key", output="out", max_graph_nodes=0)

        config, _ = load_config(tmp_path, overrides, environ={"EXPLAIN_MODEL": "from-env", "EXPLAIN_API_KEY": "x"})

        assert config.llm.model == "from-cli"
        assert config.llm.api_key == "cli-key"
        assert config.output == "out"
        assert config.graph.max_nodes == 0

    def test_api_key_reference_resolved_from_environment(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"llm": {"apiKey": "$MY_KEY"}})
        config, _ = load_config(tmp_path, environ={"MY_KEY": "secret"})
        assert config.llm.api_key == "secret"

    def test_api_key_from_dotenv(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("# local\nEXPLAIN_API_KEY='dotenv-key'\n", encoding="utf-8")
        config, _ = load_config(tmp_path, environ={})
        assert config.llm.api_key == "dotenv-key"

    def test_explicit_config_path(self, tmp_path: Path) -> None:
        other = tmp_path / "conf" / "explain.json"
        other.parent.mkdir()
        other.write_text(json.dumps({"output": "elsewhere"}), encoding="utf-8")

        config, path = load_config(tmp_path, ConfigOverrides(config_path=other), environ={})

        assert config.output == "elsewhere"
        assert path == other.resolve()


class TestInvalidConfig:
    def test_invalid_json(self, tmp_path: Path) -> None:
        (tmp_path / ".explainrc.json").write_text("{oops", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(tmp_path, environ={})

    def test_invalid_schema(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"graph": {"maxNodes": -3}})
        with pytest.raises(ConfigError):
            load_config(tmp_path, environ={})

    def test_wrong_type(self, tmp_path: Path) -> None:
        _write_config(tmp_path, {"include": "src/**"})
        with pytest.raises(ConfigError):
            load_config(tmp_path, environ={})


class TestEnvHelpers:
    def test_resolve_env_reference(self) -> None:
        assert resolve_env_reference("$TOKEN", {"TOKEN": "t"}) == "t"
        assert resolve_env_reference("$TOKEN", {}) is None
        assert resolve_env_reference("literal", {}) == "literal"
        assert resolve_env_reference(None, {}) is None

    def test_read_env_file_skips_comments_and_blanks(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text('\n# note\nA=1\nB = "two"\nBARE\n', encoding="utf-8")
        assert read_env_file(tmp_path) == {"A": "1", "B": "two"}

    def test_read_env_file_missing(self, tmp_path: Path) -> None:
        assert read_env_file(tmp_path) == {}

    def test_read_env_file_export_prefix(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("export EXPLAIN_API_KEY=abc\n", encoding="utf-8")
        assert read_env_file(tmp_path) == {"EXPLAIN_API_KEY": "abc"}

    def test_read_env_file_inline_comment(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("EXPLAIN_API_KEY=abc  # team key\n", encoding="utf-8")
        assert read_env_file(tmp_path) == {"EXPLAIN_API_KEY": "abc"}

    def test_exported_dotenv_key_is_loaded(self, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("export EXPLAIN_API_KEY=abc # team key\n", encoding="utf-8")
        config, _ = load_config(tmp_path, environ={})
        assert config.llm.api_key == "abc"
