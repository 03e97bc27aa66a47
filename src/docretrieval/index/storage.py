"""SQLite document and chunk store with full-text, fuzzy and vector lookups."""

from __future__ import annotations

import json
import re
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import numpy as np

from docretrieval.models import ChunkRecord, DocumentRecord
from docretrieval.utils.text import word_similarity

_FTS_TOKEN_RE = re.compile(r"\w+")

_DOCUMENT_COLUMNS = (
    "path, title, sha256, mtime, size, file_type, meta, document_type, category, "
    "language, summary, keywords, extracted_data, importance"
)


def _contains(text: str | None, needle: str | None) -> int:
    if not text or not needle:
        return 0
    return int(needle.casefold() in text.casefold())


def _word_similarity(query: str | None, text: str | None) -> float:
    if not query or not text:
        return 0.0
    return word_similarity(query, text)


def fts_query(query: str) -> str:
    """All query words, each quoted, so FTS5 treats them as plain terms."""
    return " AND ".join(f'"{token}"' for token in _FTS_TOKEN_RE.findall(query))


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class SQLiteVectorStore:
    """Persistence layer for documents, chunks and their embeddings.

    Opened without a ``dimension``, the store still reads, lists and deletes
    but refuses to write embeddings.
    """

    def __init__(self, db_path: Path, *, dimension: Optional[int] = None) -> None:
        self.db_path = Path(db_path)
        self.dimension = dimension
        self._lock = threading.RLock()
        self._depth = 0
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._conn.create_function("contains_ci", 2, _contains, deterministic=True)
        self._conn.create_function("word_similarity", 2, _word_similarity, deterministic=True)
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on error; nested use joins the outer one."""
        with self._lock:
            self._depth += 1
            try:
                yield self._conn
            except Exception:
                self._depth -= 1
                if self._depth == 0:
                    self._conn.rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                self._conn.commit()

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY,
                    path TEXT NOT NULL UNIQUE,
                    title TEXT,
                    sha256 TEXT NOT NULL,
                    mtime REAL NOT NULL,
                    size INTEGER NOT NULL DEFAULT 0,
                    file_type TEXT,
                    meta TEXT NOT NULL DEFAULT '{}',
                    document_type TEXT,
                    category TEXT,
                    language TEXT,
                    summary TEXT,
                    keywords TEXT NOT NULL DEFAULT '[]',
                    extracted_data TEXT NOT NULL DEFAULT '{}',
                    importance REAL NOT NULL DEFAULT 1.0
                        CHECK (importance BETWEEN 0.1 AND 2.0),
                    access_count INTEGER NOT NULL DEFAULT 0,
                    last_accessed_at TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            # Access tracking must not count as a content update.
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS documents_updated
                AFTER UPDATE OF path, title, sha256, mtime, size, document_type, category
                ON documents
                BEGIN
                    UPDATE documents SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
                END;
                """
            )
            for column in ("document_type", "category", "importance", "access_count"):
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_documents_{column} ON documents({column})"
                )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY,
                    document_id INTEGER NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    token_count INTEGER NOT NULL,
                    embedding BLOB,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(document_id) REFERENCES documents(id) ON DELETE CASCADE,
                    UNIQUE(document_id, chunk_index)
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_document_id
                    ON chunks(document_id)
                """
            )
            conn.execute(
                """
                CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
                    content,
                    content='chunks',
                    content_rowid='id',
                    tokenize='porter unicode61 remove_diacritics 2'
                )
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS chunks_ai AFTER INSERT ON chunks BEGIN
                    INSERT INTO chunks_fts(rowid, content) VALUES (new.id, new.content);
                END;
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS chunks_ad AFTER DELETE ON chunks BEGIN
                    INSERT INTO chunks_fts(chunks_fts, rowid, content)
                    VALUES ('delete', old.id, old.content);
                END;
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS chunks_au AFTER UPDATE OF content ON chunks BEGIN
                    INSERT INTO chunks_fts(chunks_fts, rowid, content)
                    VALUES ('delete', old.id, old.content);
                    INSERT INTO chunks_fts(rowid, content) VALUES (new.id, new.content);
                END;
                """
            )

    # Documents

    @staticmethod
    def _document_from_row(row: sqlite3.Row) -> DocumentRecord:
        keys = row.keys()
        return DocumentRecord(
            id=row["id"],
            path=Path(row["path"]),
            title=row["title"] or Path(row["path"]).name,
            sha256=row["sha256"],
            mtime=row["mtime"],
            size=row["size"],
            file_type=row["file_type"] or "unknown",
            meta=json.loads(row["meta"] or "{}"),
            document_type=row["document_type"] or "document",
            category=row["category"] or "general",
            language=row["language"] or "unknown",
            summary=row["summary"] or "",
            keywords=json.loads(row["keywords"] or "[]"),
            extracted_data=json.loads(row["extracted_data"] or "{}"),
            importance=row["importance"],
            access_count=row["access_count"],
            last_accessed_at=row["last_accessed_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            chunk_count=row["chunk_count"] if "chunk_count" in keys else None,
        )

    def get_document(self, document_id: int) -> Optional[DocumentRecord]:
        row = self._conn.execute(
            "SELECT * FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        return self._document_from_row(row) if row else None

    def get_document_by_path(self, path: Path | str) -> Optional[DocumentRecord]:
        row = self._conn.execute(
            "SELECT * FROM documents WHERE path = ?", (str(path),)
        ).fetchone()
        return self._document_from_row(row) if row else None

    def save_document(self, document: DocumentRecord) -> int:
        """Insert or update the row for ``document.path``; the id is stable across updates."""
        values = (
            str(document.path),
            document.title,
            document.sha256,
            document.mtime,
            document.size,
            document.file_type,
            json.dumps(document.meta, ensure_ascii=False, default=str),
            document.document_type,
            document.category,
            document.language,
            document.summary,
            json.dumps(document.keywords, ensure_ascii=False),
            json.dumps(document.extracted_data, ensure_ascii=False, default=str),
            document.importance,
        )
        with self.transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM documents WHERE path = ?", (str(document.path),)
            ).fetchone()
            if existing:
                conn.execute(
                    """
                    UPDATE documents SET
                        path = ?, title = ?, sha256 = ?, mtime = ?, size = ?, file_type = ?,
                        meta = ?, document_type = ?, category = ?, language = ?, summary = ?,
                        keywords = ?, extracted_data = ?, importance = ?
                    WHERE id = ?
                    """,
                    (*values, existing["id"]),
                )
                document.id = existing["id"]
            else:
                document.id = conn.execute(
                    f"INSERT INTO documents({_DOCUMENT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    values,
                ).lastrowid
        return document.id

    def delete_document(self, document_id: int) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return cursor.rowcount > 0

    def delete_document_by_path(self, path: Path | str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE path = ?", (str(path),))
        return cursor.rowcount > 0

    def clear(self) -> tuple[int, int]:
        """Delete every document and chunk; returns (documents, chunks) removed."""
        with self.transaction() as conn:
            chunks = conn.execute("DELETE FROM chunks").rowcount
            documents = conn.execute("DELETE FROM documents").rowcount
        return documents, chunks

    def list_documents(self, limit: int = 50, offset: int = 0) -> List[DocumentRecord]:
        rows = self._conn.execute(
            """
            SELECT d.*, (SELECT COUNT(*) FROM chunks c WHERE c.document_id = d.id) AS chunk_count
            FROM documents d
            ORDER BY d.updated_at DESC, d.id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        ).fetchall()
        return [self._document_from_row(row) for row in rows]

    def documents_where(self, column: str, value: str) -> List[DocumentRecord]:
        if column not in ("document_type", "category", "language"):
            raise ValueError(f"Cannot filter documents by {column}")
        rows = self._conn.execute(
            f"SELECT * FROM documents WHERE {column} = ? "
            "ORDER BY importance DESC, created_at DESC, id DESC",
            (value,),
        ).fetchall()
        return [self._document_from_row(row) for row in rows]

    def documents_by_type(self, document_type: str) -> List[DocumentRecord]:
        return self.documents_where("document_type", document_type)

    def documents_by_category(self, category: str) -> List[DocumentRecord]:
        return self.documents_where("category", category)

    def record_access(self, document_ids: Iterable[int]) -> int:
        ids = sorted(set(document_ids))
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with self.transaction() as conn:
            cursor = conn.execute(
                f"""
                UPDATE documents
                SET access_count = access_count + 1, last_accessed_at = ?
                WHERE id IN ({placeholders})
                """,
                (_utcnow(), *ids),
            )
        return cursor.rowcount

    def remove_missing_files(self) -> int:
        """Remove documents whose files no longer exist."""
        with self.transaction() as conn:
            rows = conn.execute("SELECT id, path FROM documents").fetchall()
            missing = [row for row in rows if not Path(row["path"]).exists()]
            for row in missing:
                conn.execute("DELETE FROM documents WHERE id = ?", (row["id"],))
        return len(missing)

    # Chunks

    def _encode_embedding(self, embedding: Optional[np.ndarray]) -> Optional[sqlite3.Binary]:
        if embedding is None:
            return None
        if self.dimension is None:
            raise ValueError("Store was opened without an embedding dimension")
        vector = np.asarray(embedding, dtype="float32").reshape(-1)
        if vector.shape[0] != self.dimension:
            raise ValueError(
                f"Embedding has dimension {vector.shape[0]}, store expects {self.dimension}"
            )
        if not np.all(np.isfinite(vector)):
            raise ValueError("Embedding contains non-finite values")
        return sqlite3.Binary(vector.tobytes())

    @staticmethod
    def _chunk_from_row(row: sqlite3.Row) -> ChunkRecord:
        blob = row["embedding"]
        return ChunkRecord(
            id=row["id"],
            document_id=row["document_id"],
            index=row["chunk_index"],
            text=row["content"],
            token_count=row["token_count"],
            embedding=np.frombuffer(blob, dtype="float32") if blob is not None else None,
        )

    @staticmethod
    def _insert_chunk_row(
        conn: sqlite3.Connection,
        document_id: int,
        chunk: ChunkRecord,
        embedding: Optional[sqlite3.Binary],
    ) -> int:
        return conn.execute(
            """
            INSERT INTO chunks(document_id, chunk_index, content, token_count, embedding)
            VALUES (?, ?, ?, ?, ?)
            """,
            (document_id, chunk.index, chunk.text, chunk.token_count, embedding),
        ).lastrowid

    def insert_chunk(self, document_id: int, chunk: ChunkRecord) -> int:
        embedding = self._encode_embedding(chunk.embedding)
        with self.transaction() as conn:
            chunk.id = self._insert_chunk_row(conn, document_id, chunk, embedding)
        chunk.document_id = document_id
        return chunk.id

    def insert_chunks(self, document_id: int, chunks: Sequence[ChunkRecord]) -> List[int]:
        """Insert a batch of chunks for a document, all or nothing.

        Embeddings are validated before anything is written. A database error
        rolls the batch back to its savepoint and is re-raised, leaving any
        enclosing transaction usable.
        """
        rows = [(chunk, self._encode_embedding(chunk.embedding)) for chunk in chunks]
        with self.transaction() as conn:
            conn.execute("SAVEPOINT chunk_batch")
            try:
                for chunk, embedding in rows:
                    chunk.id = self._insert_chunk_row(conn, document_id, chunk, embedding)
            except sqlite3.Error:
                conn.execute("ROLLBACK TO chunk_batch")
                conn.execute("RELEASE chunk_batch")
                for chunk, _ in rows:
                    chunk.id = None
                raise
            conn.execute("RELEASE chunk_batch")
        for chunk, _ in rows:
            chunk.document_id = document_id
        return [chunk.id for chunk, _ in rows]

    def delete_chunks(self, document_id: int) -> int:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
        return cursor.rowcount

    def get_chunk(self, chunk_id: int) -> Optional[ChunkRecord]:
        row = self._conn.execute("SELECT * FROM chunks WHERE id = ?", (chunk_id,)).fetchone()
        return self._chunk_from_row(row) if row else None

    def get_chunks(self, document_id: int) -> List[ChunkRecord]:
        rows = self._conn.execute(
            "SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index",
            (document_id,),
        ).fetchall()
        return [self._chunk_from_row(row) for row in rows]

    # Retrieval

    def keyword_matches(self, query: str, *, trigram_floor: float = 0.3) -> List[Dict[str, Any]]:
        """Chunks matching the query by full text, substring or trigram similarity.

        Each row carries the three raw signals: ``bm25`` (None without a
        full-text match), ``substring_match`` and ``trigram``.
        """
        match = fts_query(query)
        if not match:
            return []
        rows = self._conn.execute(
            """
            WITH fts AS (
                SELECT rowid AS chunk_id, bm25(chunks_fts) AS bm25
                FROM chunks_fts
                WHERE chunks_fts MATCH :match
            )
            SELECT * FROM (
                SELECT
                    c.id AS chunk_id,
                    c.document_id AS document_id,
                    c.chunk_index AS chunk_index,
                    c.content AS content,
                    c.token_count AS token_count,
                    d.path AS path,
                    d.title AS title,
                    d.document_type AS document_type,
                    d.category AS category,
                    d.importance AS importance,
                    fts.bm25 AS bm25,
                    contains_ci(c.content, :query) AS substring_match,
                    word_similarity(:query, c.content) AS trigram
                FROM chunks c
                JOIN documents d ON d.id = c.document_id
                LEFT JOIN fts ON fts.chunk_id = c.id
            )
            WHERE bm25 IS NOT NULL OR substring_match = 1 OR trigram > :floor
            """,
            {"match": match, "query": query.strip(), "floor": trigram_floor},
        ).fetchall()
        return [dict(row) for row in rows]

    def vector_matches(
        self,
        embedding: np.ndarray,
        *,
        threshold: float | None = None,
        document_id: int | None = None,
        exclude_chunk_id: int | None = None,
    ) -> List[Dict[str, Any]]:
        """Chunks with an embedding, scored by cosine similarity, best first."""
        query = np.asarray(embedding, dtype="float32").reshape(-1)
        sql = """
            SELECT
                c.id AS chunk_id,
                c.document_id AS document_id,
                c.chunk_index AS chunk_index,
                c.content AS content,
                c.token_count AS token_count,
                c.embedding AS embedding,
                d.path AS path,
                d.title AS title,
                d.document_type AS document_type,
                d.category AS category,
                d.importance AS importance,
                d.access_count AS access_count
            FROM chunks c
            JOIN documents d ON d.id = c.document_id
            WHERE c.embedding IS NOT NULL
        """
        params: list[Any] = []
        if document_id is not None:
            sql += " AND c.document_id = ?"
            params.append(document_id)
        if exclude_chunk_id is not None:
            sql += " AND c.id != ?"
            params.append(exclude_chunk_id)
        rows = self._conn.execute(sql, params).fetchall()
        if not rows:
            return []

        matrix = np.vstack([np.frombuffer(row["embedding"], dtype="float32") for row in rows])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, (matrix @ query) / norms, 0.0)

        results: List[Dict[str, Any]] = []
        for idx in np.argsort(-scores, kind="stable"):
            similarity = float(scores[idx])
            if threshold is not None and similarity < threshold:
                break
            row = dict(rows[idx])
            row.pop("embedding")
            row["similarity"] = similarity
            results.append(row)
        return results

    # Statistics

    def stats(self) -> Dict[str, int]:
        row = self._conn.execute(
            """
            SELECT
                (SELECT COUNT(*) FROM documents) AS document_count,
                (SELECT COUNT(*) FROM chunks) AS chunk_count,
                (SELECT COALESCE(SUM(size), 0) FROM documents) AS total_size_bytes
            """
        ).fetchone()
        return dict(row)

    def search_stats(self) -> Dict[str, int]:
        row = self._conn.execute(
            """
            SELECT
                COUNT(*) AS total_searchable_chunks,
                CAST(COALESCE(ROUND(AVG(token_count)), 0) AS INTEGER) AS average_chunk_tokens,
                COUNT(DISTINCT CASE WHEN embedding IS NOT NULL THEN document_id END)
                    AS documents_with_embeddings
            FROM chunks
            """
        ).fetchone()
        return dict(row)

    def classification_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "total_documents": self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
        }
        for key, column in (
            ("by_type", "document_type"),
            ("by_category", "category"),
            ("by_language", "language"),
        ):
            rows = self._conn.execute(
                f"SELECT {column} AS value, COUNT(*) AS n FROM documents "
                f"WHERE {column} IS NOT NULL GROUP BY {column} ORDER BY n DESC, value"
            ).fetchall()
            stats[key] = {row["value"]: row["n"] for row in rows}
        return stats
