"""Glob-based file selection.

Patterns support brace alternatives (``{a,b}``), ``*`` (one segment),
``**/`` (zero or more whole segments) and a bare ``**`` (rest of the path).
Everything else is matched literally against forward-slash relative paths.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

from codex_explain.core.hashing import digest
from codex_explain.errors import DiscoveryError
from codex_explain.models import FileRecord

logger = logging.getLogger(__name__)

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def normalize_slashes(value: str) -> str:
    return value.replace(os.sep, "/").replace("\\", "/")


def expand_braces(pattern: str) -> list[str]:
    match = _BRACE_RE.search(pattern)
    if match is None:
        return [pattern]
    prefix = pattern[: match.start()]
    suffix = pattern[match.end() :]
    expanded: list[str] = []
    for alternative in match.group(1).split(","):
        expanded.extend(expand_braces(f"{prefix}{alternative}{suffix}"))
    return expanded


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    normalized = normalize_slashes(pattern)
    parts = ["^"]
    i = 0
    while i < len(normalized):
        ch = normalized[i]
        if ch != "*":
            parts.append(re.escape(ch))
            i += 1
            continue
        if normalized.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif normalized.startswith("**", i):
            parts.append(".*")
            i += 2
        else:
            parts.append("[^/]*")
            i += 1
    parts.append("$")
    return re.compile("".join(parts))


def compile_patterns(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    return [glob_to_regex(expanded) for pattern in patterns for expanded in expand_braces(pattern)]


class PathMatcher:
    """Include/exclude selection over relative posix paths. Excludes always win."""

    def __init__(self, include: Iterable[str], exclude: Iterable[str] = ()) -> None:
        self.include = list(include)
        self.exclude = list(exclude)
        self._include_res = compile_patterns(self.include)
        self._exclude_res = compile_patterns(self.exclude)

    def matches(self, rel_path: str) -> bool:
        candidate = normalize_slashes(rel_path)
        if not any(regex.match(candidate) for regex in self._include_res):
            return False
        return not any(regex.match(candidate) for regex in self._exclude_res)


def _walk_files(root: Path) -> Iterator[Path]:
    try:
        with os.scandir(root) as entries:
            children = sorted(entries, key=lambda entry: entry.name)
    except OSError as exc:
        raise DiscoveryError(f"Cannot read directory {root}: {exc}") from exc

    for entry in children:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_files(Path(entry.path))
        elif entry.is_file(follow_symlinks=False):
            yield Path(entry.path)


def _read_file(root: Path, absolute: Path) -> FileRecord:
    try:
        data = absolute.read_bytes()
    except OSError as exc:
        raise DiscoveryError(f"Cannot read file {absolute}: {exc}") from exc
    return FileRecord(
        path=normalize_slashes(str(absolute.relative_to(root))),
        digest=digest(data),
        absolute_path=str(absolute),
        content=data.decode("utf-8", errors="replace"),
    )


def discover_files(root: str | Path, include: Iterable[str], exclude: Iterable[str] = ()) -> list[FileRecord]:
    """Select files under ``root`` and hash their contents, sorted by relative path."""
    root_path = Path(root)
    if not root_path.is_dir():
        raise DiscoveryError(f"Not a directory: {root_path}")

    matcher = PathMatcher(include, exclude)
    records = [
        _read_file(root_path, absolute)
        for absolute in _walk_files(root_path)
        if matcher.matches(str(absolute.relative_to(root_path)))
    ]
    records.sort(key=lambda record: record.path)
    logger.debug("Discovered %d file(s) under %s", len(records), root_path)
    return records
