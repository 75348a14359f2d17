"""Editable-file filtering for repository snapshots."""

import pathlib
from typing import Iterable

# Extensions the generation backend may rewrite
EDITABLE_EXTENSIONS = {
    ".tsx", ".ts", ".jsx", ".js",
    ".json", ".css", ".scss", ".html", ".md",
}

# Substrings that disqualify a path. Matched anywhere in the path, so
# "docs/api/README.md" is excluded along with real API routes.
EXCLUDED_PATHS = (
    "node_modules",
    ".env",
    ".git",
    "package-lock.json",
    "next.config",
    "api/",
    ".next",
    "dist",
    "build",
)


def is_excluded_path(path: str, excluded: Iterable[str] = EXCLUDED_PATHS) -> bool:
    """Check whether any exclusion substring occurs in ``path``."""
    return any(marker in path for marker in excluded)


def has_editable_extension(path: str) -> bool:
    """Check the file extension against the allow-list (case-insensitive)."""
    return pathlib.PurePosixPath(path).suffix.lower() in EDITABLE_EXTENSIONS


def is_editable_file(path: str) -> bool:
    """Check if a file may be offered to the generation backend.

    Args:
        path: Repository-relative path

    Returns:
        True if the extension is allowed and no exclusion matches
    """
    return has_editable_extension(path) and not is_excluded_path(path)


def should_descend(dir_path: str) -> bool:
    """Check if a directory walk should enter ``dir_path``."""
    return not is_excluded_path(dir_path)
