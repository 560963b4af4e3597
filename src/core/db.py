"""SQLite database layer for catalog entries and categories."""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from src.core.schemas import EntryStatus, NewCategory, NewEntry

_CATEGORIES_TABLE = """
CREATE TABLE IF NOT EXISTS categories (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL,
    slug        TEXT    NOT NULL UNIQUE,
    parent_id   INTEGER REFERENCES categories(id),
    sort_order  INTEGER NOT NULL DEFAULT 0
);
"""

_ENTRIES_TABLE = """
CREATE TABLE IF NOT EXISTS entries (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    title             TEXT    NOT NULL,
    slug              TEXT    NOT NULL UNIQUE,
    url               TEXT    NOT NULL UNIQUE,
    description       TEXT    NOT NULL DEFAULT '',
    tagline           TEXT,
    thumbnail         TEXT,
    logo_url          TEXT,
    category_id       INTEGER NOT NULL REFERENCES categories(id),
    tags              TEXT    NOT NULL DEFAULT '[]',
    pricing_model     TEXT    NOT NULL DEFAULT 'free',
    has_free_version  INTEGER NOT NULL DEFAULT 0,
    quality_score     INTEGER NOT NULL DEFAULT 50,
    visits            INTEGER NOT NULL DEFAULT 0,
    likes             INTEGER NOT NULL DEFAULT 0,
    is_featured       INTEGER NOT NULL DEFAULT 0,
    is_trusted        INTEGER NOT NULL DEFAULT 0,
    ssl_enabled       INTEGER NOT NULL DEFAULT 1,
    status            TEXT    NOT NULL DEFAULT 'pending',
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL,
    features          TEXT,
    screenshots       TEXT,
    pros_cons         TEXT
);
"""

_INDEXES = (
    "CREATE INDEX IF NOT EXISTS entries_status_quality_idx ON entries (status, quality_score)",
    "CREATE INDEX IF NOT EXISTS entries_status_created_idx ON entries (status, created_at)",
    "CREATE INDEX IF NOT EXISTS entries_status_visits_idx ON entries (status, visits)",
    "CREATE INDEX IF NOT EXISTS entries_category_idx ON entries (category_id)",
    "CREATE INDEX IF NOT EXISTS categories_parent_idx ON categories (parent_id)",
)


def to_db_timestamp(value: datetime) -> str:
    """Normalize a datetime to the UTC text form stored in the database.

    Naive datetimes are taken as UTC. All stored timestamps share this
    format so that text comparison orders them chronologically.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def init_db(path: str | Path, timeout: float = 5.0) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    conn = connect(path, timeout=timeout)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_CATEGORIES_TABLE)
    conn.execute(_ENTRIES_TABLE)
    for statement in _INDEXES:
        conn.execute(statement)
    conn.commit()
    return conn


def connect(path: str | Path, timeout: float = 5.0) -> sqlite3.Connection:
    """Open a connection usable from any thread of the API worker pool.

    Each request owns its connection, so disabling the same-thread check
    does not share a connection between concurrent requests.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=timeout, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def insert_category(conn: sqlite3.Connection, category: NewCategory) -> int:
    """Insert a category, resolving its parent by slug. Returns the row ID.

    Re-inserting an existing slug returns the existing ID unchanged.
    """
    row = conn.execute(
        "SELECT id FROM categories WHERE slug = ?", (category.slug,),
    ).fetchone()
    if row is not None:
        return int(row["id"])

    parent_id = None
    if category.parent:
        parent = conn.execute(
            "SELECT id FROM categories WHERE slug = ?", (category.parent,),
        ).fetchone()
        if parent is None:
            msg = f"Unknown parent category '{category.parent}' for '{category.slug}'"
            raise ValueError(msg)
        parent_id = parent["id"]

    cursor = conn.execute(
        "INSERT INTO categories (name, slug, parent_id, sort_order) VALUES (?, ?, ?, ?)",
        (category.name, category.slug, parent_id, category.sort_order),
    )
    conn.commit()
    return cursor.lastrowid or 0


def insert_entry(conn: sqlite3.Connection, entry: NewEntry) -> int:
    """Insert an entry, resolving its category by slug. Returns the row ID."""
    row = conn.execute(
        "SELECT id FROM categories WHERE slug = ?", (entry.category,),
    ).fetchone()
    if row is None:
        msg = f"Unknown category '{entry.category}' for entry '{entry.slug}'"
        raise ValueError(msg)

    created_at = to_db_timestamp(entry.created_at)
    cursor = conn.execute(
        """
        INSERT INTO entries
            (title, slug, url, description, tagline, thumbnail, logo_url,
             category_id, tags, pricing_model, has_free_version, quality_score,
             visits, likes, is_featured, is_trusted, ssl_enabled, status,
             created_at, updated_at, features, screenshots, pros_cons)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            entry.title,
            entry.slug,
            entry.url,
            entry.description,
            entry.tagline,
            entry.thumbnail,
            entry.logo_url,
            row["id"],
            json.dumps(entry.tags),
            entry.pricing_model.value,
            int(entry.has_free_version),
            entry.quality_score,
            entry.visits,
            entry.likes,
            int(entry.is_featured),
            int(entry.is_trusted),
            int(entry.ssl_enabled),
            entry.status.value,
            created_at,
            created_at,
            _json_column(entry.features),
            _json_column(entry.screenshots),
            _json_column(entry.pros_cons),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def set_entry_status(conn: sqlite3.Connection, entry_id: int, status: EntryStatus) -> bool:
    """Flip an entry's moderation status. Returns False if the entry is missing."""
    cursor = conn.execute(
        "UPDATE entries SET status = ?, updated_at = ? WHERE id = ?",
        (status.value, to_db_timestamp(datetime.now(timezone.utc)), entry_id),
    )
    conn.commit()
    return cursor.rowcount > 0


def increment_counter(
    conn: sqlite3.Connection,
    entry_id: int,
    visits_delta: int = 0,
    likes_delta: int = 0,
) -> None:
    """Atomically bump the visit/like counters of an entry."""
    conn.execute(
        """
        UPDATE entries
        SET visits = visits + ?, likes = MAX(0, likes + ?)
        WHERE id = ?
        """,
        (visits_delta, likes_delta, entry_id),
    )
    conn.commit()


def _json_column(value: Any) -> str | None:
    """Store strings verbatim (possibly malformed); serialize anything else."""
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)
