"""Core docretrieval data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass(slots=True)
class FileFingerprint:
    """Identity of a file's content on disk."""

    path: Path
    size: int
    mtime: float
    sha256: str
    file_type: str


@dataclass(slots=True)
class ParsedDocument:
    text: str
    title: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Classification:
    """Query-independent description of a document."""

    document_type: str
    category: str
    language: str
    summary: str
    keywords: List[str]
    extracted_data: Dict[str, Any]
    importance: float


@dataclass(slots=True)
class DocumentRecord:
    """One indexed source file."""

    path: Path
    title: str
    sha256: str
    mtime: float
    size: int
    file_type: str = "unknown"
    document_type: str = "document"
    category: str = "general"
    language: str = "unknown"
    summary: str = ""
    keywords: List[str] = field(default_factory=list)
    extracted_data: Dict[str, Any] = field(default_factory=dict)
    importance: float = 1.0
    access_count: int = 0
    last_accessed_at: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    chunk_count: Optional[int] = None

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.mtime)

    def apply(self, classification: Classification) -> None:
        self.document_type = classification.document_type
        self.category = classification.category
        self.language = classification.language
        self.summary = classification.summary
        self.keywords = list(classification.keywords)
        self.extracted_data = dict(classification.extracted_data)
        self.importance = classification.importance


@dataclass(slots=True)
class ChunkRecord:
    """Fragment of document text, optionally paired with its embedding."""

    document_id: Optional[int]
    index: int
    text: str
    token_count: int
    embedding: Optional[np.ndarray] = None
    id: Optional[int] = None


@dataclass(slots=True)
class SearchResult:
    chunk_id: int
    document_id: int
    path: Path
    title: str
    chunk_index: int
    text: str
    score: float
    channel: str
    document_type: str = "document"
    category: str = "general"
    importance: float = 1.0
