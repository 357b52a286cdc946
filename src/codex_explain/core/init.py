"""Project bootstrap: starter config, stored API key and ``.gitignore`` entry."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from dotenv import set_key

from codex_explain.config import (
    API_KEY_ENV,
    DEFAULT_BASE_URL,
    DEFAULT_EXCLUDE,
    DEFAULT_INCLUDE,
    DEFAULT_MAX_GRAPH_NODES,
    DEFAULT_MODEL,
    DEFAULT_OUTPUT,
    ENV_FILE,
    default_config_path,
)
from codex_explain.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitResult:
    config_path: Path
    env_path: Path | None


def upsert_env_key(env_path: Path, key: str, value: str) -> None:
    """Set ``key=value`` in a dotenv file, replacing an existing assignment."""
    env_path.touch(exist_ok=True)
    set_key(env_path, key, value, quote_mode="auto")


def ensure_gitignore_has_env(root: Path) -> None:
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        gitignore.write_text(f"{ENV_FILE}\n", encoding="utf-8")
        return
    content = gitignore.read_text(encoding="utf-8")
    if ENV_FILE in (line.strip() for line in content.splitlines()):
        return
    separator = "" if not content or content.endswith("\n") else "\n"
    gitignore.write_text(f"{content}{separator}{ENV_FILE}\n", encoding="utf-8")


def starter_config(output: str | None = None, base_url: str | None = None, model: str | None = None) -> dict:
    return {
        "output": output or DEFAULT_OUTPUT,
        "llm": {
            "baseUrl": base_url or DEFAULT_BASE_URL,
            "model": model or DEFAULT_MODEL,
            "apiKey": f"${API_KEY_ENV}",
        },
        "graph": {"maxNodes": DEFAULT_MAX_GRAPH_NODES},
        "include": list(DEFAULT_INCLUDE),
        "exclude": list(DEFAULT_EXCLUDE),
    }


def store_api_key(root: Path, api_key: str) -> Path:
    env_path = root / ENV_FILE
    try:
        upsert_env_key(env_path, API_KEY_ENV, api_key)
        ensure_gitignore_has_env(root)
    except OSError as exc:
        raise ConfigError(f"Cannot store API key in {env_path}: {exc}") from exc
    logger.info("Saved %s to %s", API_KEY_ENV, env_path)
    return env_path


def run_init(
    root: Path,
    config_path: Path | None = None,
    output: str | None = None,
    base_url: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
) -> InitResult:
    if not root.is_dir():
        raise ConfigError(f"Not a directory: {root}")
    target = (config_path or default_config_path(root)).resolve()
    try:
        target.write_text(json.dumps(starter_config(output, base_url, model), indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot write config {target}: {exc}") from exc
    logger.info("Initialized config at %s", target)

    env_path = store_api_key(root, api_key) if api_key else None
    return InitResult(config_path=target, env_path=env_path)
