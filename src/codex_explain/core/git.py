import subprocess
from dataclasses import dataclass
from pathlib import Path

_DEFAULT_BRANCH = "main"
_UNKNOWN_COMMIT = "unknown"


@dataclass(frozen=True)
class GitMetadata:
    branch: str
    commit: str


def _git(root: Path, *args: str) -> str | None:
    try:
        result = subprocess.run(
            ["git", "-C", str(root), *args],
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    output = result.stdout.strip()
    return output or None


def get_git_metadata(root: Path) -> GitMetadata:
    branch = _git(root, "branch", "--show-current") or _DEFAULT_BRANCH
    commit = _git(root, "rev-parse", "HEAD") or _UNKNOWN_COMMIT
    return GitMetadata(branch=branch, commit=commit)


def normalize_remote_url(remote: str) -> str:
    """Turn ``git@host:owner/repo.git`` and ``https://host/owner/repo.git`` into a browsable https URL."""
    url = remote.strip()
    if url.startswith("git@") and ":" in url:
        host, _, path = url[len("git@") :].partition(":")
        url = f"https://{host}/{path}"
    elif url.startswith("ssh://git@"):
        url = "https://" + url[len("ssh://git@") :]
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.rstrip("/")


def infer_repo_url(root: Path) -> str | None:
    remote = _git(root, "remote", "get-url", "origin")
    if remote is None:
        return None
    return normalize_remote_url(remote)


def _line_fragment(start_line: int | None, end_line: int | None) -> str:
    if not start_line:
        return ""
    if not end_line or end_line == start_line:
        return f"#L{start_line}"
    return f"#L{start_line}-L{end_line}"


def build_source_url(
    repo_url: str | None,
    branch: str,
    file_path: str,
    start_line: int | None = None,
    end_line: int | None = None,
) -> str:
    """Link to a file (or line range) on the remote, or a relative link when there is no remote."""
    fragment = _line_fragment(start_line, end_line)
    if not repo_url:
        return f"{file_path}{fragment}"
    base = repo_url.removesuffix(".git").rstrip("/")
    return f"{base}/blob/{branch}/{file_path}{fragment}"
