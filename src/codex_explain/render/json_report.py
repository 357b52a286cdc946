import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from codex_explain.config import ExplainConfig
from codex_explain.core.git import GitMetadata
from codex_explain.core.pipeline import RunResult

SCHEMA_VERSION = "1.0"

_ENTITY_FIELDS = {"id", "file_path", "name", "kind", "exported", "span", "signature", "explanation", "source_url"}


def build_report(
    result: RunResult,
    config: ExplainConfig,
    root: Path,
    git: GitMetadata,
    repo_url: str | None,
) -> dict[str, Any]:
    entity_ids_by_file: dict[str, list[str]] = {}
    for entity in result.entities:
        entity_ids_by_file.setdefault(entity.file_path, []).append(entity.id)

    def dump(model: Any, **kwargs: Any) -> Any:
        return model.model_dump(mode="json", by_alias=True, **kwargs)

    return {
        "schemaVersion": SCHEMA_VERSION,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "repo": {
            "path": str(root),
            "repoUrl": repo_url or "",
            "linkMode": "remote" if repo_url else "local",
            "branch": git.branch,
            "commit": git.commit,
        },
        "config": {
            "include": config.include,
            "exclude": config.exclude,
            "output": config.output,
            "model": config.llm.model,
            "baseUrl": config.llm.base_url,
            "maxGraphNodes": config.graph.max_nodes,
        },
        "stats": {
            "fileCount": len(result.file_summaries),
            "entityCount": len(result.entities),
            "routeCount": len(result.routes),
            "llmFailedCount": result.failed_count,
            "llmCachedCount": result.cached_count,
        },
        "files": [
            {
                "path": summary.path,
                "entityIds": entity_ids_by_file.get(summary.path, []),
                "importCount": len(summary.imports),
                "exportCount": len(summary.exports),
                "sourceUrl": summary.source_url,
            }
            for summary in result.file_summaries
        ],
        "entities": [dump(entity, include=_ENTITY_FIELDS, exclude_none=True) for entity in result.entities],
        "dependencies": {"edges": [dump(edge) for edge in result.edges]},
        "routes": [dump(route, include=_ENTITY_FIELDS, exclude_none=True) for route in result.routes],
        "changelog": dump(result.changelog),
        "graph": dump(result.graph),
        "errors": [dump(error, exclude_none=True) for error in result.errors],
    }


def write_json_report(path: Path, report: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report, indent=2, ensure_ascii=False), encoding="utf-8")
    return path
