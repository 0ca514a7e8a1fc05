"""Database module for the adaptive progression engine."""

from .database import Database, get_db, close_db
from .store import SQLTrainingStore, TrainingStore, get_store, reset_store

__all__ = ["Database", "get_db", "close_db", "TrainingStore", "SQLTrainingStore", "get_store", "reset_store"]
