import posixpath
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from codex_explain.models import DependencyEdge, DependencyGraph

_SCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
_PYTHON_EXTENSIONS = (".py", ".pyi")


@dataclass(frozen=True)
class FileRelations:
    file_path: str
    imports: Sequence[str]


def _resolve_script_import(from_path: str, target: str, known_paths: set[str]) -> str:
    base = posixpath.normpath(posixpath.join(posixpath.dirname(from_path), target))
    candidates = [base]
    candidates.extend(base + ext for ext in _SCRIPT_EXTENSIONS)
    candidates.extend(f"{base}/index{ext}" for ext in _SCRIPT_EXTENSIONS)
    return next((candidate for candidate in candidates if candidate in known_paths), base)


def _resolve_python_import(from_path: str, target: str, known_paths: set[str]) -> str | None:
    level = len(target) - len(target.lstrip("."))
    module = target[level:].replace(".", "/")

    if level:
        base = posixpath.dirname(from_path)
        for _ in range(level - 1):
            base = posixpath.dirname(base)
        stem = posixpath.join(base, module) if module else base
        candidates = [f"{stem}.py", f"{stem}.pyi", f"{stem}/__init__.py"]
        return next((candidate for candidate in candidates if candidate in known_paths), None)

    suffixes = (f"{module}.py", f"{module}.pyi", f"{module}/__init__.py")
    for path in sorted(known_paths):
        if any(path == suffix or path.endswith("/" + suffix) for suffix in suffixes):
            return path
    return None


def resolve_import_target(from_path: str, target: str, known_paths: Iterable[str]) -> str:
    """Map an import specifier onto a discovered file, or return it unchanged."""
    known = set(known_paths)
    if from_path.endswith(_PYTHON_EXTENSIONS):
        resolved = _resolve_python_import(from_path, target, known)
    elif target.startswith("."):
        resolved = _resolve_script_import(from_path, target, known)
    else:
        resolved = None
    return resolved or target


def build_dependency_edges(relations: Iterable[FileRelations]) -> list[DependencyEdge]:
    edges: dict[DependencyEdge, None] = {}
    for relation in relations:
        for imported in relation.imports:
            edges.setdefault(DependencyEdge(source=relation.file_path, target=imported), None)
    return list(edges)


def build_graph(file_paths: Sequence[str], edges: Sequence[DependencyEdge], max_nodes: int) -> DependencyGraph:
    """Bound the file graph to ``max_nodes``, keeping the first paths in caller order."""
    if max_nodes < 0:
        raise ValueError(f"max_nodes must be >= 0, got {max_nodes}")

    nodes = list(dict.fromkeys(file_paths))
    unique_edges = list(dict.fromkeys(edges))
    if len(nodes) <= max_nodes:
        return DependencyGraph(
            nodes=nodes,
            edges=unique_edges,
            truncated=False,
            omitted_node_count=0,
        )

    kept = nodes[:max_nodes]
    kept_set = set(kept)
    return DependencyGraph(
        nodes=kept,
        edges=[edge for edge in unique_edges if edge.source in kept_set and edge.target in kept_set],
        truncated=True,
        omitted_node_count=len(nodes) - len(kept),
    )
