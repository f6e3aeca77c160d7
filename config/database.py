"""
DONTCLOSETHIS — Leaderboard Database

SQLite storage for the leaderboard server (web_app.py): high scores, play
sessions, per-level attempts and daily rollups.

The database file comes from the Flask app's DB_PATH config when called inside
an app context, otherwise from ServerConfig.DB_PATH.

Usage:
    from config.database import get_db, init_db, query_db, execute_db

    # In Flask request context — auto-managed lifecycle
    rows = query_db("SELECT * FROM high_scores WHERE player_name = %s", [name])

    # Outside request context — returns standalone connection, caller closes
    db = get_db()
    ...
    db.close()
"""

import logging
import sqlite3

from config.settings import ServerConfig

logger = logging.getLogger("dontclosethis.db")

SQLITE_PATH = ServerConfig.DB_PATH


# ── SQLite dict-row wrapper ──
class _SqliteDict(dict):
    """Makes sqlite3.Row behave like a dict with .get() support."""
    pass


def _sqlite_dict_factory(cursor, row):
    d = _SqliteDict()
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def _db_path() -> str:
    from flask import current_app, has_app_context
    if has_app_context():
        return current_app.config.get("DB_PATH") or SQLITE_PATH
    return SQLITE_PATH


def _open_sqlite(path: str = None):
    """Open a raw SQLite connection."""
    conn = sqlite3.connect(path or _db_path(), timeout=10)
    conn.row_factory = _sqlite_dict_factory
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


# ═══════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════

class DatabaseConnection:
    """Thin wrapper over a SQLite connection.

    - Accepts %s placeholders and converts them to ?
    - Returns list[dict] from queries
    - Supports .execute(), .fetchone(), .fetchall(), .commit(), .rollback(), .close()
    """

    def __init__(self, conn):
        self._conn = conn
        self._cursor = None

    def _adapt_sql(self, sql):
        return sql.replace("%s", "?")

    def execute(self, sql, params=None):
        """Execute a query. Returns self for chaining."""
        self._cursor = self._conn.execute(self._adapt_sql(sql), params or [])
        return self

    def executescript(self, sql):
        self._conn.executescript(sql)
        return self

    def fetchone(self):
        """Fetch one row as dict, or None."""
        if self._cursor is None:
            return None
        return self._cursor.fetchone()

    def fetchall(self):
        """Fetch all rows as list[dict]."""
        if self._cursor is None:
            return []
        return self._cursor.fetchall()

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def get_db():
    """Get a database connection.

    In Flask request context: caches on g, auto-closed on teardown.
    Outside request context: returns standalone connection — caller must close.
    """
    from flask import g, has_app_context

    if has_app_context():
        if "_database" not in g:
            g._database = _make_connection()
        return g._database
    return _make_connection()


def _make_connection(path: str = None):
    return DatabaseConnection(_open_sqlite(path))


def close_db_on_teardown(exc):
    """Flask teardown handler — auto-close the per-request connection."""
    from flask import g
    db = g.pop("_database", None)
    if db is not None:
        db.close()


def query_db(sql, params=None, one=False):
    """Convenience: execute + fetch in one call.
    Uses the request-scoped connection in Flask context."""
    db = get_db()
    db.execute(sql, params)
    return db.fetchone() if one else db.fetchall()


def execute_db(sql, params=None):
    """Convenience: execute + commit in one call."""
    db = get_db()
    db.execute(sql, params)
    db.commit()


# ═══════════════════════════════════════════════════════════════
# Schema
# ═══════════════════════════════════════════════════════════════

# Timestamps are epoch milliseconds; daily_stats.date is YYYY-MM-DD (UTC).
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS high_scores (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    player_name TEXT NOT NULL,
    level INTEGER NOT NULL,
    time_elapsed INTEGER NOT NULL,
    timestamp INTEGER NOT NULL,
    ip_hash TEXT,
    session_id TEXT
);

CREATE TABLE IF NOT EXISTS game_sessions (
    session_id TEXT PRIMARY KEY,
    started_at INTEGER NOT NULL,
    ip_hash TEXT,
    max_level_reached INTEGER DEFAULT 1
);

CREATE TABLE IF NOT EXISTS level_attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    level INTEGER NOT NULL,
    success INTEGER NOT NULL,
    time_spent INTEGER NOT NULL,
    timestamp INTEGER NOT NULL,
    ip_hash TEXT
);

CREATE TABLE IF NOT EXISTS daily_stats (
    date TEXT NOT NULL,
    level INTEGER NOT NULL,
    attempts INTEGER DEFAULT 0,
    successes INTEGER DEFAULT 0,
    failures INTEGER DEFAULT 0,
    PRIMARY KEY (date, level)
);

CREATE INDEX IF NOT EXISTS idx_scores_player ON high_scores(player_name);
CREATE INDEX IF NOT EXISTS idx_scores_rank ON high_scores(level DESC, time_elapsed ASC);
CREATE INDEX IF NOT EXISTS idx_attempts_level ON level_attempts(level);
CREATE INDEX IF NOT EXISTS idx_attempts_session ON level_attempts(session_id);
"""


def init_db(path: str = None):
    """Initialize the database schema."""
    db = _make_connection(path)
    try:
        db.executescript(SCHEMA_SQL)
        db.commit()
        logger.info(f"Database initialized ({path or _db_path()})")
    finally:
        db.close()
