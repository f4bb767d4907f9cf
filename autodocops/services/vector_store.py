"""SQLite store for projects, generated documents and their embeddings"""

import json
import logging
import math
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import sqlite_vec

from autodocops.config import config
from autodocops.models.artifact import Artifact, SourceType
from autodocops.models.document import StoredDocument
from autodocops.models.project import Project
from autodocops.models.search_result import SimilarityMatch

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors

    Returns 0.0 when either vector has zero magnitude. The result is
    clamped to [-1, 1] to absorb floating point error.

    Raises:
        ValueError: If the vectors have different lengths
    """
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")

    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        status TEXT NOT NULL,
        data TEXT NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        artifact_type TEXT NOT NULL,
        source_type TEXT NOT NULL,
        language TEXT NOT NULL,
        content TEXT NOT NULL,
        metadata TEXT NOT NULL DEFAULT '{}',
        embedding BLOB NOT NULL,
        model_name TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP NOT NULL,
        CHECK(source_type IN ('api', 'database'))
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_documents_project_type
    ON documents(project_id, artifact_type, is_active)
    """,
    "CREATE INDEX IF NOT EXISTS idx_documents_active ON documents(is_active, source_type)",
)


class VectorStore:
    """SQLite-based store for documentation artifacts and embeddings"""

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or config.db_path
        # An in-memory database lives only as long as its one connection
        self._shared: sqlite3.Connection | None = None

    @property
    def in_memory(self) -> bool:
        return self.db_path == ":memory:"

    def _open(self) -> sqlite3.Connection:
        """Open a connection with rows by name and the sqlite-vec functions loaded"""
        if self.in_memory:
            conn = sqlite3.connect(":memory:", check_same_thread=False)
        else:
            conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        return conn

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; file databases get a fresh one per call"""
        if self.in_memory:
            if self._shared is None:
                self._shared = self._open()
            yield self._shared
            return

        conn = self._open()
        try:
            yield conn
        finally:
            conn.close()

    async def initialize(self) -> None:
        """Create the database file, enable WAL and create tables"""
        if not self.in_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            if not self.in_memory:
                # Readers keep working while a document transaction commits
                conn.execute("PRAGMA journal_mode=WAL")
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()

    async def save_project(self, project: Project) -> None:
        """Insert or update a project row"""
        row = (
            project.id,
            project.name,
            project.status.value,
            project.model_dump_json(),
            project.updated_at.isoformat(),
        )
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO projects (id, name, status, data, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                row,
            )
            conn.commit()

    async def get_project(self, project_id: str) -> Project | None:
        with self._connect() as conn:
            found = conn.execute(
                "SELECT data FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
        return Project.model_validate_json(found["data"]) if found else None

    async def list_projects(self) -> list[Project]:
        with self._connect() as conn:
            rows = conn.execute("SELECT data FROM projects ORDER BY name").fetchall()
        return [Project.model_validate_json(r["data"]) for r in rows]

    async def save_document(
        self,
        artifact: Artifact,
        embedding: list[float],
        model_name: str,
        metadata: dict[str, Any] | None = None,
    ) -> StoredDocument:
        """
        Persist an artifact and its embedding, superseding the active one

        The previous active document for the same project and artifact type
        is deactivated in the same transaction as the insert.

        Raises:
            ValueError: If the artifact has no project or the embedding is empty
        """
        if artifact.project_id is None:
            raise ValueError("Only project artifacts can be indexed")
        if not embedding:
            raise ValueError("Embedding must not be empty")

        document = StoredDocument(
            id=artifact.id,
            project_id=artifact.project_id,
            artifact_type=artifact.artifact_type,
            source_type=artifact.artifact_type.source_type,
            language=artifact.language,
            content=artifact.content,
            metadata=metadata or {},
            model_name=model_name,
        )
        values = (
            document.id,
            document.project_id,
            document.artifact_type.value,
            document.source_type.value,
            document.language.value,
            document.content,
            json.dumps(document.metadata),
            sqlite_vec.serialize_float32(embedding),
            document.model_name,
            document.created_at.isoformat(),
        )

        # Supersede and insert commit or roll back together
        with self._connect() as conn, conn:
            conn.execute(
                "UPDATE documents SET is_active = 0 "
                "WHERE project_id = ? AND artifact_type = ? AND is_active = 1",
                (document.project_id, document.artifact_type.value),
            )
            conn.execute(
                """
                INSERT INTO documents (
                    id, project_id, artifact_type, source_type, language, content,
                    metadata, embedding, model_name, is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                """,
                values,
            )
        return document

    @staticmethod
    def _to_document(row: sqlite3.Row) -> StoredDocument:
        fields = {key: row[key] for key in row.keys() if key != "embedding"}
        fields["metadata"] = json.loads(fields["metadata"])
        fields["is_active"] = bool(fields["is_active"])
        return StoredDocument(**fields)

    async def list_documents(
        self, project_id: str, include_inactive: bool = False
    ) -> list[StoredDocument]:
        active_clause = "" if include_inactive else " AND is_active = 1"
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM documents WHERE project_id = ?{active_clause} ORDER BY created_at",
                (project_id,),
            ).fetchall()
        return [self._to_document(row) for row in rows]

    async def semantic_search(
        self,
        query_embedding: list[float],
        threshold: float | None = None,
        limit: int | None = None,
        project_id: str | None = None,
    ) -> list[SimilarityMatch]:
        """
        Rank active documents by cosine similarity to a query vector

        Similarity is 1 - vec_distance_cosine, computed by sqlite-vec. Rows
        whose vector length differs from the query are skipped.

        Args:
            query_embedding: Query vector
            threshold: Keep only similarity strictly above this (default from config)
            limit: Maximum number of results over all sources (default from config)
            project_id: Restrict to one project

        Returns:
            Matches sorted by similarity, highest first, ties broken by document id
        """
        if not query_embedding:
            raise ValueError("Query embedding must not be empty")

        threshold = config.search_threshold if threshold is None else threshold
        limit = config.search_limit if limit is None else limit
        if limit < 0:
            raise ValueError("limit must not be negative")

        query_blob = sqlite_vec.serialize_float32(query_embedding)
        dimension = len(query_embedding)
        scope = "is_active = 1"
        scope_params: tuple = ()
        if project_id is not None:
            scope += " AND project_id = ?"
            scope_params = (project_id,)

        # A zero-magnitude vector has no cosine distance; it scores 0
        sql = f"""
            SELECT id, project_id, source_type, content, metadata, similarity
            FROM (
                SELECT
                    id, project_id, source_type, content, metadata,
                    CASE WHEN vec_length(embedding) = ? THEN
                        MAX(-1.0, MIN(1.0,
                            COALESCE(1.0 - vec_distance_cosine(embedding, ?), 0.0)))
                    END AS similarity
                FROM documents
                WHERE {scope}
            )
            WHERE similarity > ?
            ORDER BY similarity DESC, id
            LIMIT ?
        """
        with self._connect() as conn:
            rows = conn.execute(
                sql, (dimension, query_blob, *scope_params, threshold, limit)
            ).fetchall()
            (skipped,) = conn.execute(
                f"SELECT COUNT(*) FROM documents WHERE {scope} AND vec_length(embedding) != ?",
                (*scope_params, dimension),
            ).fetchone()

        if skipped:
            logger.warning(f"Skipped {skipped} documents with a different embedding dimension")

        return [
            SimilarityMatch(
                document_id=row["id"],
                similarity=row["similarity"],
                type=SourceType(row["source_type"]),
                project_id=row["project_id"],
                metadata=json.loads(row["metadata"]),
                content=row["content"],
            )
            for row in rows
        ]

    async def count_documents(self, active_only: bool = True) -> int:
        sql = "SELECT COUNT(*) FROM documents"
        if active_only:
            sql += " WHERE is_active = 1"
        with self._connect() as conn:
            (count,) = conn.execute(sql).fetchone()
        return count

    async def health_check(self) -> bool:
        """True when the documents table is readable"""
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1 FROM documents LIMIT 1").fetchall()
        except sqlite3.Error as e:
            logger.warning(f"Vector store health check failed: {e}")
            return False
        return True

    def close(self) -> None:
        """Release the in-memory connection; file databases hold none open"""
        if self._shared is not None:
            self._shared.close()
            self._shared = None
