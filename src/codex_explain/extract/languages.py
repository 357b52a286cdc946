from pathlib import PurePosixPath

_EXTENSION_LANGUAGE_MAP = {
    ".cjs": "javascript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".py": "python",
    ".pyi": "python",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

_LANGUAGE_FAMILIES = {
    "javascript": "script",
    "python": "python",
    "tsx": "script",
    "typescript": "script",
}


def detect_language(file_path: str) -> str | None:
    """Return the tree-sitter grammar name for a path, or None when unsupported."""
    return _EXTENSION_LANGUAGE_MAP.get(PurePosixPath(file_path).suffix.lower())


def language_family(language: str) -> str:
    try:
        return _LANGUAGE_FAMILIES[language]
    except KeyError:
        raise ValueError(f"Unsupported language '{language}'. Supported: {sorted(_LANGUAGE_FAMILIES)}") from None
