"""
Data adapters for unidata.

An adapter implements data operations for one backend:
- MemoryAdapter / MockAdapter: in-process lists of dicts
- CacheAdapter: an LRUCache exposed as {key, value} records
- RemoteAdapter: a peer server reached over HTTP

Custom backends subclass BaseAdapter and override what they support.
"""

from .base import BaseAdapter, default_source_name, implements
from .cache import CacheAdapter, CacheEntry, LRUCache, json_size
from .memory import MemoryAdapter, MockAdapter
from .remote import RemoteAdapter
from .upsert import perform_upsert, perform_upsert_many

__all__ = [
    "BaseAdapter",
    "CacheAdapter",
    "CacheEntry",
    "LRUCache",
    "MemoryAdapter",
    "MockAdapter",
    "RemoteAdapter",
    "default_source_name",
    "implements",
    "json_size",
    "perform_upsert",
    "perform_upsert_many",
]
