"""
SQLAlchemy-based content storage implementation.

Provides the relational store for captured items on any SQLAlchemy-compatible
database. On SQLite, lexical search uses an FTS5 virtual table kept in sync
with the items table by triggers; on other databases it falls back to a
case-insensitive LIKE match.
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import Column, DateTime, Engine, Index, Integer, String, Text, column, func, or_
from sqlalchemy import table as sql_table
from sqlalchemy import text
from sqlalchemy.orm import Session, declarative_base

from capture_search.models import (
    CapturedItem,
    EmbeddingStatus,
    SearchFilters,
    SearchHistoryEntry,
    can_transition,
)
from capture_search.utils.filters import to_naive_utc
from capture_search.utils.terms import query_terms

logger = logging.getLogger(__name__)

# Create SQLAlchemy Base
Base = declarative_base()

FTS_TABLE = "captured_items_fts"

FTS_DDL = [
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
        title,
        annotation,
        extracted_text,
        content='captured_items',
        content_rowid='pk'
    )
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS captured_items_ai AFTER INSERT ON captured_items BEGIN
        INSERT INTO {FTS_TABLE}(rowid, title, annotation, extracted_text)
        VALUES (new.pk, new.title, new.annotation, new.extracted_text);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS captured_items_ad AFTER DELETE ON captured_items BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, title, annotation, extracted_text)
        VALUES ('delete', old.pk, old.title, old.annotation, old.extracted_text);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS captured_items_au AFTER UPDATE ON captured_items BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, title, annotation, extracted_text)
        VALUES ('delete', old.pk, old.title, old.annotation, old.extracted_text);
        INSERT INTO {FTS_TABLE}(rowid, title, annotation, extracted_text)
        VALUES (new.pk, new.title, new.annotation, new.extracted_text);
    END
    """,
]

fts = sql_table(FTS_TABLE, column("rowid"), column("rank"))

def build_fts_query(query: str) -> str:
    """
    Turn free text into an FTS5 MATCH expression.

    Each term is quoted so FTS operators and punctuation in user input are
    matched literally; terms are implicitly ANDed.
    """
    return " ".join(f'"{term}"' for term in query_terms(query))


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CapturedItemDB(Base):
    """SQLAlchemy model for captured items."""

    __tablename__ = "captured_items"

    # SQLite rowid alias, used to link the FTS table
    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)

    owner_id = Column(String, nullable=True, index=True)
    content_type = Column(String, nullable=False, index=True)
    title = Column(Text, nullable=True)
    annotation = Column(Text, nullable=True)
    tags_json = Column(Text, nullable=False, default="[]")
    extracted_text = Column(Text, nullable=True)
    source = Column(String, nullable=True, index=True)

    # Status tracking
    embedding_status = Column(String, nullable=False, default="pending", index=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (Index("idx_items_owner_status", "owner_id", "embedding_status"),)

    def to_captured_item(self) -> CapturedItem:
        """Convert database model to CapturedItem."""
        tags = json.loads(self.tags_json) if self.tags_json else []

        return CapturedItem(
            id=self.id,
            owner_id=self.owner_id,
            content_type=self.content_type,
            title=self.title,
            annotation=self.annotation,
            tags=tags,
            extracted_text=self.extracted_text,
            source=self.source,
            embedding_status=self.embedding_status,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @staticmethod
    def from_captured_item(item: CapturedItem) -> "CapturedItemDB":
        """Create database model from CapturedItem."""
        return CapturedItemDB(
            id=item.id,
            owner_id=item.owner_id,
            content_type=item.content_type,
            title=item.title,
            annotation=item.annotation,
            tags_json=json.dumps(item.tags),
            extracted_text=item.extracted_text,
            source=item.source,
            embedding_status=item.embedding_status,
            created_at=to_naive_utc(item.created_at),
            updated_at=to_naive_utc(item.updated_at),
        )


class SearchHistoryDB(Base):
    """SQLAlchemy model for search history."""

    __tablename__ = "search_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    query = Column(Text, nullable=False)
    results_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    def to_entry(self) -> SearchHistoryEntry:
        return SearchHistoryEntry(
            id=self.id,
            query=self.query,
            results_count=self.results_count,
            created_at=self.created_at,
        )


class SQLAlchemyContentStore:
    """
    SQLAlchemy-based content store.

    Works with any SQLAlchemy-compatible database. Full-text ranking needs
    SQLite's FTS5 extension (bundled with the sqlite3 module on all common
    builds).

    Example:
        from sqlalchemy import create_engine
        engine = create_engine("sqlite:///data/metadata.db")
        store = SQLAlchemyContentStore(engine)
        store.create_tables()
    """

    def __init__(self, engine: Engine):
        """
        Initialize the SQLAlchemy content store.

        Args:
            engine: SQLAlchemy engine for database connection
        """
        self.engine = engine
        self._use_fts = engine.dialect.name == "sqlite"
        logger.info(f"SQLAlchemyContentStore initialized (engine={engine.url}, fts={self._use_fts})")

    @contextmanager
    def _session(self):
        """Context manager for database sessions with automatic commit/rollback."""
        session = Session(self.engine)
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            session.close()

    def create_tables(self):
        """Create database tables (and the FTS index on SQLite) if they don't exist."""
        Base.metadata.create_all(self.engine)

        if self._use_fts:
            with self.engine.begin() as conn:
                for statement in FTS_DDL:
                    conn.execute(text(statement))

        logger.info("Database tables created/verified")

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                return conn.execute(text("SELECT 1")).scalar() == 1
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    # =========================================================================
    # Items
    # =========================================================================

    def add_item(self, item: CapturedItem) -> str:
        """Store a captured item."""
        with self._session() as session:
            session.add(CapturedItemDB.from_captured_item(item))

            logger.info(f"Stored item {item.id} ({item.content_type}, owner={item.owner_id})")
            return item.id

    def get_by_id(self, item_id: str) -> Optional[CapturedItem]:
        with self._session() as session:
            row = session.query(CapturedItemDB).filter(CapturedItemDB.id == item_id).first()
            return row.to_captured_item() if row else None

    def delete_item(self, item_id: str) -> bool:
        with self._session() as session:
            count = session.query(CapturedItemDB).filter(CapturedItemDB.id == item_id).delete()

            if count:
                logger.info(f"Deleted item {item_id}")
            else:
                logger.warning(f"Item not found for deletion: {item_id}")

            return count > 0

    def update_embedding_status(
        self,
        item_id: str,
        owner_id: Optional[str],
        status: EmbeddingStatus,
        force: bool = False,
    ) -> bool:
        with self._session() as session:
            query = session.query(CapturedItemDB).filter(CapturedItemDB.id == item_id)
            if owner_id is not None:
                query = query.filter(CapturedItemDB.owner_id == owner_id)

            row = query.first()
            if not row:
                logger.warning(f"Cannot update embedding status of {item_id}: not found")
                return False

            if not can_transition(row.embedding_status, status, force=force):
                logger.warning(
                    f"Refusing embedding status change for {item_id}: "
                    f"{row.embedding_status} -> {status}"
                )
                return False

            row.embedding_status = status
            row.updated_at = datetime.now()

            logger.debug(f"Embedding status of {item_id} set to {status}")
            return True

    def list_by_embedding_status(
        self, status: EmbeddingStatus, limit: int = 10
    ) -> List[CapturedItem]:
        with self._session() as session:
            rows = (
                session.query(CapturedItemDB)
                .filter(CapturedItemDB.embedding_status == status)
                .order_by(CapturedItemDB.created_at.asc())
                .limit(limit)
                .all()
            )
            return [row.to_captured_item() for row in rows]

    def count_by_embedding_status(self, owner_id: Optional[str] = None) -> Dict[str, int]:
        with self._session() as session:
            query = session.query(CapturedItemDB.embedding_status, func.count(CapturedItemDB.pk))
            if owner_id is not None:
                query = query.filter(CapturedItemDB.owner_id == owner_id)

            counts = {"pending": 0, "completed": 0, "failed": 0}
            for status, count in query.group_by(CapturedItemDB.embedding_status).all():
                counts[status] = count

            counts["total"] = sum(counts.values())
            return counts

    # =========================================================================
    # Full-text search
    # =========================================================================

    def search_by_text(
        self,
        query: str,
        limit: int = 10,
        filters: Optional[SearchFilters] = None,
    ) -> List[CapturedItem]:
        """Lexical search, best match first."""
        terms = query_terms(query)
        if not terms:
            logger.debug(f"No searchable terms in query '{query}'")
            return []

        with self._session() as session:
            if self._use_fts:
                q = (
                    session.query(CapturedItemDB)
                    .join(fts, fts.c.rowid == CapturedItemDB.pk)
                    .filter(text(f"{FTS_TABLE} MATCH :match").bindparams(match=build_fts_query(query)))
                    .order_by(fts.c.rank)
                )
            else:
                searchable = (
                    CapturedItemDB.title,
                    CapturedItemDB.annotation,
                    CapturedItemDB.extracted_text,
                )
                q = session.query(CapturedItemDB)
                for term in terms:
                    pattern = f"%{_like_escape(term)}%"
                    q = q.filter(or_(*[col.ilike(pattern, escape="\\") for col in searchable]))
                q = q.order_by(CapturedItemDB.created_at.desc())

            q = self._apply_filters(q, filters)
            rows = q.limit(limit).all()

            logger.debug(f"Lexical search for '{query}' returned {len(rows)} rows")
            return [row.to_captured_item() for row in rows]

    def _apply_filters(self, query, filters: Optional[SearchFilters]):
        if filters is None:
            return query

        if filters.content_types:
            query = query.filter(CapturedItemDB.content_type.in_(filters.content_types))

        if filters.date_from is not None:
            query = query.filter(CapturedItemDB.created_at >= to_naive_utc(filters.date_from))

        if filters.date_to is not None:
            query = query.filter(CapturedItemDB.created_at <= to_naive_utc(filters.date_to))

        if filters.source:
            query = query.filter(CapturedItemDB.source == filters.source)

        # Tags are stored as a JSON list; match each quoted tag (AND)
        for tag in filters.tags or []:
            pattern = f"%{_like_escape(json.dumps(tag))}%"
            query = query.filter(CapturedItemDB.tags_json.like(pattern, escape="\\"))

        return query

    # =========================================================================
    # Search history
    # =========================================================================

    def record_search_history(self, query: str, result_count: int) -> None:
        with self._session() as session:
            session.add(SearchHistoryDB(query=query, results_count=result_count))

    def get_search_history(self, limit: int = 10) -> List[SearchHistoryEntry]:
        with self._session() as session:
            rows = (
                session.query(SearchHistoryDB)
                .order_by(SearchHistoryDB.created_at.desc(), SearchHistoryDB.id.desc())
                .limit(limit)
                .all()
            )
            return [row.to_entry() for row in rows]
