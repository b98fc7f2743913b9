"""
Repository layer for data access abstraction.
"""

from .interfaces import IDataStore
from .memory_store import MemoryDataStore
from .factory import create_data_store, get_data_store, set_data_store

__all__ = [
    "IDataStore",
    "MemoryDataStore",
    "create_data_store",
    "get_data_store",
    "set_data_store",
]
