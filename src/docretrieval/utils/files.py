"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable, Iterable, Iterator


def is_hidden(path: Path, root: Path | None = None) -> bool:
    """True if any component of ``path`` (below ``root``, if given) is a dotfile."""
    parts = path.parts
    if root is not None:
        try:
            parts = path.relative_to(root).parts
        except ValueError:
            pass
    return any(part.startswith(".") and part not in (".", "..") for part in parts)


def iter_document_paths(
    inputs: Iterable[Path], is_supported: Callable[[Path], bool]
) -> Iterator[Path]:
    """Yield supported, non-hidden files from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            for child in sorted(item.rglob("*")):
                if child.is_file() and not is_hidden(child, item) and is_supported(child):
                    yield child
        elif item.is_file() and not item.name.startswith(".") and is_supported(item):
            yield item


def compute_sha256(path: Path) -> str:
    """Compute SHA256 hash for a file."""
    sha = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            sha.update(chunk)
    return sha.hexdigest()
