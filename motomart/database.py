"""
Database operations and connection management.
"""
import os
import sqlite3
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

logger = logging.getLogger(__name__)

# Schema definitions
DDL_USERS = """
CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  username TEXT NOT NULL UNIQUE,
  email TEXT NOT NULL UNIQUE,
  password TEXT NOT NULL,
  full_name TEXT,
  phone TEXT,
  location TEXT,
  address TEXT,
  date_of_birth TEXT,
  gender TEXT,
  occupation TEXT,
  license_number TEXT,
  preferred_bike_type TEXT,
  riding_experience TEXT,
  emergency_contact TEXT,
  social_media TEXT,
  notifications TEXT,
  profile_picture TEXT,
  role TEXT NOT NULL DEFAULT 'user',
  reset_token TEXT,
  reset_token_expires TEXT,
  created_at TEXT NOT NULL
);
"""

DDL_MOTORCYCLES = """
CREATE TABLE IF NOT EXISTS motorcycles (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  owner_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  brand TEXT NOT NULL,
  model TEXT NOT NULL,
  year INTEGER,
  price REAL,
  condition TEXT,
  kilometers_driven INTEGER,
  registration_year INTEGER,
  registration_number TEXT,
  description TEXT,
  contact_number TEXT,
  location TEXT,
  specifications TEXT NOT NULL DEFAULT '{}',
  image_url TEXT,
  additional_images TEXT NOT NULL DEFAULT '[]',
  listing_status TEXT NOT NULL DEFAULT 'active',
  is_premium INTEGER NOT NULL DEFAULT 0,
  is_featured INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
"""

DDL_INTERACTIONS = """
CREATE TABLE IF NOT EXISTS user_motorcycle_interactions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  motorcycle_id INTEGER NOT NULL REFERENCES motorcycles(id) ON DELETE CASCADE,
  interaction_type TEXT NOT NULL CHECK (interaction_type IN ('view', 'save')),
  created_at TEXT NOT NULL,
  UNIQUE (user_id, motorcycle_id, interaction_type)
);
"""

DDL_LOGIN_HISTORY = """
CREATE TABLE IF NOT EXISTS login_history (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  login_time TEXT NOT NULL,
  status TEXT NOT NULL
);
"""

DDL_TRANSACTIONS = """
CREATE TABLE IF NOT EXISTS transactions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
  amount REAL NOT NULL,
  created_at TEXT NOT NULL
);
"""

DDL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_motorcycles_owner ON motorcycles(owner_id);",
    "CREATE INDEX IF NOT EXISTS idx_motorcycles_created ON motorcycles(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_motorcycles_price ON motorcycles(price);",
    "CREATE INDEX IF NOT EXISTS idx_interactions_user ON user_motorcycle_interactions(user_id, interaction_type);",
    "CREATE INDEX IF NOT EXISTS idx_transactions_created ON transactions(created_at);",
]


class Database:
    """
    SQLite storage collaborator.

    Opens a short-lived connection per operation, so one instance can be shared
    by concurrent request handlers.
    """

    def __init__(self, path: str):
        if not path:
            raise ValueError("Database path not configured")
        self.path = path

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.path)
            conn.row_factory = sqlite3.Row  # Enable dict-like access
            conn.execute("PRAGMA foreign_keys=ON;")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Database error: {e}")
            if conn is not None:
                conn.rollback()
            raise
        finally:
            if conn is not None:
                conn.close()

    def init_schema(self) -> None:
        """Initialize database schema with tables and indexes."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with self.connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")
            for ddl in (DDL_USERS, DDL_MOTORCYCLES, DDL_INTERACTIONS,
                        DDL_LOGIN_HISTORY, DDL_TRANSACTIONS):
                conn.execute(ddl)
            for ddl in DDL_INDEXES:
                conn.execute(ddl)
        logger.info(f"Database schema ready at {self.path}")

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self.connect() as conn:
            cursor = conn.execute(sql, tuple(params))
            return [dict(row) for row in cursor.fetchall()]

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        with self.connect() as conn:
            row = conn.execute(sql, tuple(params)).fetchone()
            return dict(row) if row is not None else None

    def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Return the first column of the first row, or None."""
        with self.connect() as conn:
            row = conn.execute(sql, tuple(params)).fetchone()
            return row[0] if row is not None else None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run a write statement; the returned cursor exposes lastrowid and rowcount."""
        with self.connect() as conn:
            return conn.execute(sql, tuple(params))

    def ping(self) -> bool:
        return self.fetch_value("SELECT 1") == 1
