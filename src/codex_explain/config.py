"""Run configuration: CLI overrides, environment, ``.explainrc.json`` and ``.env``."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError

from codex_explain.errors import ConfigError
from codex_explain.models import CamelModel

CONFIG_FILE = ".explainrc.json"
ENV_FILE = ".env"
API_KEY_ENV = "EXPLAIN_API_KEY"

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_OUTPUT = "explain-output"
DEFAULT_MAX_GRAPH_NODES = 50

DEFAULT_INCLUDE = ["**/*.{py,ts,tsx,js,jsx,mjs,cjs}"]
DEFAULT_EXCLUDE = [
    "**/*.test.*",
    "**/*.spec.*",
    "**/test_*.py",
    "**/*_test.py",
    "**/conftest.py",
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/.vercel/**",
    "**/out/**",
    "**/coverage/**",
    "**/.next/**",
    "**/.git/**",
    "**/.venv/**",
    "**/venv/**",
    "**/__pycache__/**",
    "**/.explain/**",
]

_ENV_REFERENCE_RE = re.compile(r"^\$([A-Z0-9_]+)$")


class _RawLlmConfig(CamelModel):
    base_url: str | None = None
    model: str | None = None
    api_key: str | None = None


class _RawGraphConfig(CamelModel):
    max_nodes: int | None = Field(default=None, ge=0)


class _RawConfig(CamelModel):
    repo_url: str | None = None
    include: list[str] | None = None
    exclude: list[str] | None = None
    output: str | None = None
    llm: _RawLlmConfig = Field(default_factory=_RawLlmConfig)
    graph: _RawGraphConfig = Field(default_factory=_RawGraphConfig)


class LlmConfig(BaseModel):
    base_url: str
    model: str
    api_key: str = Field(default="", repr=False)


class GraphConfig(BaseModel):
    max_nodes: int = Field(ge=0)


class ExplainConfig(BaseModel):
    repo_url: str | None = None
    include: list[str]
    exclude: list[str]
    output: str
    llm: LlmConfig
    graph: GraphConfig


@dataclass(frozen=True)
class ConfigOverrides:
    """Values given on the command line; ``None`` means not given."""

    config_path: Path | None = None
    output: str | None = None
    base_url: str | None = None
    model: str | None = None
    api_key: str | None = None
    max_graph_nodes: int | None = None


def resolve_env_reference(value: str | None, environ: Mapping[str, str]) -> str | None:
    """Expand a ``$NAME`` value from the environment; other values pass through."""
    if not value:
        return value
    match = _ENV_REFERENCE_RE.match(value)
    if match is None:
        return value
    return environ.get(match.group(1))


def read_env_file(root: Path) -> dict[str, str]:
    env_path = root / ENV_FILE
    if not env_path.is_file():
        return {}
    # bare keys without "=" parse to None
    return {key: value for key, value in dotenv_values(env_path).items() if value is not None}


def _read_config_file(config_path: Path) -> _RawConfig:
    if not config_path.is_file():
        return _RawConfig()
    try:
        return _RawConfig.model_validate(json.loads(config_path.read_text(encoding="utf-8")))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {config_path}: {exc}") from exc
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {config_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc


def default_config_path(root: Path) -> Path:
    return root / CONFIG_FILE


def load_config(
    root: Path,
    overrides: ConfigOverrides | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[ExplainConfig, Path]:
    """Merge configuration sources; CLI beats environment beats file beats defaults."""
    overrides = overrides or ConfigOverrides()
    env = os.environ if environ is None else environ
    config_path = (overrides.config_path or default_config_path(root)).resolve()
    raw = _read_config_file(config_path)

    api_key = (
        overrides.api_key
        or env.get(API_KEY_ENV)
        or resolve_env_reference(raw.llm.api_key, env)
        or read_env_file(root).get(API_KEY_ENV)
        or ""
    )

    max_nodes = overrides.max_graph_nodes
    if max_nodes is None:
        max_nodes = raw.graph.max_nodes if raw.graph.max_nodes is not None else DEFAULT_MAX_GRAPH_NODES

    try:
        config = ExplainConfig(
            repo_url=raw.repo_url,
            include=raw.include if raw.include is not None else list(DEFAULT_INCLUDE),
            exclude=raw.exclude if raw.exclude is not None else list(DEFAULT_EXCLUDE),
            output=overrides.output or raw.output or DEFAULT_OUTPUT,
            llm=LlmConfig(
                base_url=overrides.base_url or env.get("EXPLAIN_BASE_URL") or raw.llm.base_url or DEFAULT_BASE_URL,
                model=overrides.model or env.get("EXPLAIN_MODEL") or raw.llm.model or DEFAULT_MODEL,
                api_key=api_key,
            ),
            graph=GraphConfig(max_nodes=max_nodes),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    return config, config_path
