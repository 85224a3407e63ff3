"""Path helpers for repo-relative file paths recorded on commits."""

from __future__ import annotations

from pathlib import PurePosixPath


def canonicalize_repo_relative_path(path: str) -> str:
    """Canonicalize a repo-relative path.

    Rules:
    - normalize path separators to "/"
    - strip leading "./" segments
    - strip leading "/" so paths remain repo-relative
    - collapse redundant separators/segments via PurePosixPath
    """
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = str(PurePosixPath(normalized))
    if normalized == ".":
        return ""
    return normalized.lstrip("/")


def unique_paths(paths: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Canonicalize paths, dropping empties and repeats while keeping first-seen order."""
    seen: dict[str, None] = {}
    for raw in paths:
        canonical = canonicalize_repo_relative_path(raw)
        if canonical and canonical not in seen:
            seen[canonical] = None
    return tuple(seen)


def display_name(path: str) -> str:
    """Basename used in alert titles (``src/api/users.py`` -> ``users.py``)."""
    return PurePosixPath(path).name or path
