"""
Database management and connection handling.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from ..core.exceptions import PersistenceError, ConfigurationError


class DatabaseManager(ABC):
    """Abstract base class for database management."""

    @abstractmethod
    def execute_query(self, query: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        """Execute a query and return results."""
        pass

    @abstractmethod
    def execute_update(self, query: str, params: Optional[tuple] = None) -> int:
        """Execute an update query and return affected rows."""
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        pass


class SQLiteDatabase(DatabaseManager):
    """SQLite database implementation."""

    def __init__(self, database_path: str = "gradebook.db"):
        self._database_path = database_path
        self._lock = threading.RLock()
        self._initialize_database()

    @property
    def database_path(self) -> str:
        return self._database_path

    def _initialize_database(self) -> None:
        """Initialize the database with the grading schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS evaluation_schemas (
                    course_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS student_scores (
                    course_id TEXT NOT NULL,
                    enrollment_id TEXT NOT NULL,
                    component_key TEXT NOT NULL,
                    value REAL NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (course_id, enrollment_id, component_key)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS split_series (
                    id TEXT PRIMARY KEY,
                    parent_component_id TEXT UNIQUE NOT NULL,
                    data TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper cleanup."""
        conn = None
        try:
            conn = sqlite3.connect(self._database_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            raise PersistenceError(f"Database error: {str(e)}") from e
        finally:
            if conn:
                conn.close()

    def execute_query(self, query: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        """Execute a query and return results."""
        with self._lock, self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())
            return [dict(row) for row in cursor.fetchall()]

    def execute_update(self, query: str, params: Optional[tuple] = None) -> int:
        """Execute an update query and return affected rows."""
        with self._lock, self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())
            conn.commit()
            return cursor.rowcount

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        query = "SELECT name FROM sqlite_master WHERE type='table' AND name=?"
        return len(self.execute_query(query, (table_name,))) > 0


class DatabaseFactory:
    """Factory for creating database instances."""

    @staticmethod
    def create_database(database_type: str, **kwargs) -> DatabaseManager:
        """Create a database instance based on type."""
        if database_type.lower() == "sqlite":
            return SQLiteDatabase(**kwargs)
        raise ConfigurationError(f"Unsupported database type: {database_type}")
