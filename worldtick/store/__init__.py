from .base import Doc, Page, Query, Store, Transaction
from .memory_store import MemoryStore
from .json_store import JsonFileStore

__all__ = ["Doc", "Page", "Query", "Store", "Transaction", "MemoryStore", "JsonFileStore"]
