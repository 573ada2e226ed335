"""SQLite affair repository."""

import json
import sqlite3
import threading
from contextlib import closing, contextmanager
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from ..error_handling import (
    AffairNotFoundError,
    DuplicateAffairError,
    PersistenceError,
    SlugTakenError,
)
from ..models import AffairSource, CandidateAffair, MergeResult, PersistedAffair, Subject
from .base import AffairRepository, pair_key, plan_merge

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS subjects (
        id TEXT PRIMARY KEY,
        full_name TEXT NOT NULL,
        external_id TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS affairs (
        id TEXT PRIMARY KEY,
        subject_id TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        category TEXT NOT NULL,
        status TEXT NOT NULL,
        involvement TEXT NOT NULL,
        publication_status TEXT NOT NULL,
        confidence_score INTEGER,
        court TEXT,
        ecli TEXT,
        pourvoi_number TEXT,
        case_numbers TEXT NOT NULL DEFAULT '[]',
        facts_date TEXT,
        start_date TEXT,
        verdict_date TEXT,
        verified_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS affair_sources (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        affair_id TEXT NOT NULL REFERENCES affairs(id) ON DELETE CASCADE,
        url TEXT NOT NULL,
        title TEXT NOT NULL,
        publisher TEXT NOT NULL,
        source_type TEXT NOT NULL,
        published_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dismissed_pairs (
        affair_id_a TEXT NOT NULL,
        affair_id_b TEXT NOT NULL,
        dismissed_at TEXT NOT NULL,
        PRIMARY KEY (affair_id_a, affair_id_b)
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_affairs_ecli ON affairs(ecli) WHERE ecli IS NOT NULL",
    "CREATE INDEX IF NOT EXISTS idx_affairs_subject ON affairs(subject_id)",
    "CREATE INDEX IF NOT EXISTS idx_sources_affair ON affair_sources(affair_id)",
]


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteAffairRepository(AffairRepository):
    """Affairs, sources and subjects stored in one SQLite file.

    ``atomic`` opens a ``BEGIN IMMEDIATE`` transaction, which takes the
    database write lock up front: a second process reconciling the same data
    waits instead of passing the duplicate check concurrently. The unique
    ECLI index backs this up.
    """

    def __init__(self, db_path: str = "poligraph.db", timeout: float = 30.0):
        super().__init__()
        self.db_path = db_path
        self.timeout = timeout
        self._local = threading.local()
        self.init_database()

    def init_database(self) -> None:
        """Create tables and indexes if missing."""
        try:
            with self._connection() as conn:
                for statement in SCHEMA:
                    conn.execute(statement)
            self.logger.info(f"✅ Affair database ready at {self.db_path}")
        except sqlite3.Error as e:
            self.logger.error(f"Failed to initialize affair database: {e}")
            raise PersistenceError(f"Cannot initialize {self.db_path}: {e}") from e

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _connection(self):
        """Connection of the enclosing ``atomic`` block, or a short-lived one."""
        active = getattr(self._local, "conn", None)
        if active is not None:
            yield active
            return
        with closing(self._open()) as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @contextmanager
    def atomic(self, subject_id: str):
        if getattr(self._local, "conn", None) is not None:
            # Nested: already inside the subject's transaction
            yield self
            return

        with closing(self._open()) as conn:
            conn.execute("BEGIN IMMEDIATE")
            self._local.conn = conn
            try:
                yield self
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")
            finally:
                self._local.conn = None

    # Subjects

    def add_subject(self, subject: Subject) -> Subject:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO subjects (id, full_name, external_id) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    full_name = excluded.full_name,
                    external_id = excluded.external_id
                """,
                (subject.id, subject.full_name, subject.external_id),
            )
        return subject

    def list_subjects(
        self, limit: Optional[int] = None, name_filter: Optional[str] = None
    ) -> List[Subject]:
        query = "SELECT id, full_name, external_id FROM subjects"
        params = []
        if name_filter:
            query += " WHERE lower(full_name) LIKE ?"
            params.append(f"%{name_filter.lower()}%")
        query += " ORDER BY full_name"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Subject(**dict(row)) for row in rows]

    # Affairs

    def find_existing_affairs(self, subject_id: str) -> List[PersistedAffair]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM affairs WHERE subject_id = ? ORDER BY created_at DESC",
                (subject_id,),
            ).fetchall()
            return [self._row_to_affair(conn, row) for row in rows]

    def get_affair(self, affair_id: str) -> Optional[PersistedAffair]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM affairs WHERE id = ?", (affair_id,)).fetchone()
            return self._row_to_affair(conn, row) if row else None

    def slug_exists(self, slug: str) -> bool:
        with self._connection() as conn:
            row = conn.execute("SELECT 1 FROM affairs WHERE slug = ?", (slug,)).fetchone()
        return row is not None

    def create_affair(
        self,
        candidate: CandidateAffair,
        slug: str,
        verified_at: Optional[datetime] = None,
    ) -> PersistedAffair:
        affair = self.build_affair(candidate, slug, verified_at)
        try:
            with self._connection() as conn:
                # Savepoint keeps a failed insert from leaving half an affair
                # inside an enclosing atomic() transaction
                conn.execute("SAVEPOINT create_affair")
                try:
                    self._insert(conn, affair)
                except BaseException:
                    conn.execute("ROLLBACK TO SAVEPOINT create_affair")
                    conn.execute("RELEASE SAVEPOINT create_affair")
                    raise
                conn.execute("RELEASE SAVEPOINT create_affair")
        except sqlite3.IntegrityError as e:
            if "ecli" in str(e).lower() or "idx_affairs_ecli" in str(e):
                raise DuplicateAffairError(
                    f"ECLI {affair.ecli} already stored", ecli=affair.ecli
                ) from e
            if "affairs.slug" in str(e):
                raise SlugTakenError(slug) from e
            raise PersistenceError(f"Integrity error: {e}", "integrity_error") from e
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error: {e}", "database_error") from e
        return affair

    def list_affairs(self, unverified_only: bool = False) -> List[PersistedAffair]:
        query = "SELECT * FROM affairs"
        if unverified_only:
            query += " WHERE verified_at IS NULL"
        query += " ORDER BY created_at"
        with self._connection() as conn:
            rows = conn.execute(query).fetchall()
            return [self._row_to_affair(conn, row) for row in rows]

    def merge_affairs(self, keep_id: str, remove_id: str) -> MergeResult:
        if keep_id == remove_id:
            raise PersistenceError("Cannot merge an affair into itself", "invalid_merge")

        try:
            with self.atomic(keep_id):
                keep = self.get_affair(keep_id)
                remove = self.get_affair(remove_id)
                if keep is None:
                    raise AffairNotFoundError(keep_id)
                if remove is None:
                    raise AffairNotFoundError(remove_id)

                moved, updates = plan_merge(keep, remove)
                with self._connection() as conn:
                    conn.execute(
                        """
                        UPDATE affair_sources SET affair_id = ?
                        WHERE affair_id = ? AND url NOT IN (
                            SELECT url FROM affair_sources WHERE affair_id = ?
                        )
                        """,
                        (keep_id, remove_id, keep_id),
                    )
                    # Removed before the update so a copied ECLI stays unique
                    conn.execute("DELETE FROM affairs WHERE id = ?", (remove_id,))
                    if updates:
                        values = [
                            json.dumps(value) if column == "case_numbers" else value
                            for column, value in updates.items()
                        ]
                        assignments = ", ".join(f"{column} = ?" for column in updates)
                        conn.execute(
                            f"UPDATE affairs SET {assignments} WHERE id = ?",
                            values + [keep_id],
                        )
                    conn.execute(
                        "DELETE FROM dismissed_pairs WHERE affair_id_a = ? OR affair_id_b = ?",
                        (remove_id, remove_id),
                    )
                kept = self.get_affair(keep_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error: {e}", "database_error") from e

        self.logger.info(f"🔀 Merged affair {remove_id} into {keep_id}")
        return MergeResult(
            kept=kept,
            removed_id=remove_id,
            sources_moved=len(moved),
            identifiers_merged=sorted(updates),
        )

    def dismiss_pair(self, affair_id_a: str, affair_id_b: str) -> None:
        id_a, id_b = pair_key(affair_id_a, affair_id_b)
        with self._connection() as conn:
            for affair_id in (id_a, id_b):
                row = conn.execute("SELECT 1 FROM affairs WHERE id = ?", (affair_id,)).fetchone()
                if row is None:
                    raise AffairNotFoundError(affair_id)
            conn.execute(
                """
                INSERT INTO dismissed_pairs (affair_id_a, affair_id_b, dismissed_at)
                VALUES (?, ?, ?)
                ON CONFLICT(affair_id_a, affair_id_b) DO NOTHING
                """,
                (id_a, id_b, datetime.now(timezone.utc).isoformat()),
            )

    def dismissed_pairs(self) -> Set[Tuple[str, str]]:
        with self._connection() as conn:
            rows = conn.execute("SELECT affair_id_a, affair_id_b FROM dismissed_pairs").fetchall()
        return {(row["affair_id_a"], row["affair_id_b"]) for row in rows}

    def _insert(self, conn: sqlite3.Connection, affair: PersistedAffair) -> None:
        conn.execute(
            """
            INSERT INTO affairs (
                id, subject_id, slug, title, description, category, status,
                involvement, publication_status, confidence_score, court, ecli,
                pourvoi_number, case_numbers, facts_date, start_date,
                verdict_date, verified_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                affair.id,
                affair.subject_id,
                affair.slug,
                affair.title,
                affair.description,
                affair.category.value,
                affair.status.value,
                affair.involvement.value,
                affair.publication_status.value,
                affair.confidence_score,
                affair.court,
                affair.ecli,
                affair.pourvoi_number,
                json.dumps(affair.case_numbers),
                _iso(affair.facts_date),
                _iso(affair.start_date),
                _iso(affair.verdict_date),
                _iso(affair.verified_at),
                _iso(affair.created_at),
            ),
        )
        conn.executemany(
            """
            INSERT INTO affair_sources
                (affair_id, url, title, publisher, source_type, published_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    affair.id,
                    source.url,
                    source.title,
                    source.publisher,
                    source.source_type.value,
                    _iso(source.published_at),
                )
                for source in affair.sources
            ],
        )

    def _row_to_affair(self, conn: sqlite3.Connection, row: sqlite3.Row) -> PersistedAffair:
        source_rows = conn.execute(
            """
            SELECT url, title, publisher, source_type, published_at
            FROM affair_sources WHERE affair_id = ? ORDER BY id
            """,
            (row["id"],),
        ).fetchall()
        sources = [
            AffairSource(
                url=s["url"],
                title=s["title"],
                publisher=s["publisher"],
                source_type=s["source_type"],
                published_at=_parse_date(s["published_at"]),
            )
            for s in source_rows
        ]
        return PersistedAffair(
            id=row["id"],
            subject_id=row["subject_id"],
            slug=row["slug"],
            title=row["title"],
            description=row["description"],
            category=row["category"],
            status=row["status"],
            involvement=row["involvement"],
            publication_status=row["publication_status"],
            confidence_score=row["confidence_score"],
            court=row["court"],
            ecli=row["ecli"],
            pourvoi_number=row["pourvoi_number"],
            case_numbers=json.loads(row["case_numbers"] or "[]"),
            facts_date=_parse_date(row["facts_date"]),
            start_date=_parse_date(row["start_date"]),
            verdict_date=_parse_date(row["verdict_date"]),
            verified_at=_parse_datetime(row["verified_at"]),
            created_at=_parse_datetime(row["created_at"]),
            sources=sources,
        )

    def get_stats(self) -> Dict[str, int]:
        with self._connection() as conn:
            subjects = conn.execute("SELECT COUNT(*) FROM subjects").fetchone()[0]
            affairs = conn.execute("SELECT COUNT(*) FROM affairs").fetchone()[0]
            published = conn.execute(
                "SELECT COUNT(*) FROM affairs WHERE publication_status = 'PUBLISHED'"
            ).fetchone()[0]
            sources = conn.execute("SELECT COUNT(*) FROM affair_sources").fetchone()[0]
            dismissed = conn.execute("SELECT COUNT(*) FROM dismissed_pairs").fetchone()[0]
        return {
            "subjects": subjects,
            "affairs": affairs,
            "published": published,
            "draft": affairs - published,
            "sources": sources,
            "dismissed": dismissed,
        }
