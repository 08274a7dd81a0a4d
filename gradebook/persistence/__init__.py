"""
Persistence module: storage backends behind the PersistenceAPI contract.
"""

from .database import DatabaseManager, SQLiteDatabase, DatabaseFactory
from .repositories import (
    SchemaRepository, ScoreRepository, SplitSeriesRepository, SQLitePersistence
)
from .memory import InMemoryPersistence, PersistenceFactory

__all__ = [
    "DatabaseManager",
    "SQLiteDatabase",
    "DatabaseFactory",
    "SchemaRepository",
    "ScoreRepository",
    "SplitSeriesRepository",
    "SQLitePersistence",
    "InMemoryPersistence",
    "PersistenceFactory",
]
