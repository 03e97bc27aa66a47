"""Exception types raised by docretrieval."""

from __future__ import annotations

from pathlib import Path


class DocRetrievalError(Exception):
    """Base class for all docretrieval errors."""


class ParseError(DocRetrievalError):
    """A file could not be turned into text."""

    def __init__(self, path: Path | str, message: str) -> None:
        super().__init__(f"{message} ({path})")
        self.path = Path(path)
        self.reason = message


class EmbeddingError(DocRetrievalError):
    """An embedding backend failed or returned an unusable vector."""


class DocumentNotFoundError(DocRetrievalError):
    def __init__(self, document_id: int) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id
