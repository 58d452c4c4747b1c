"""Remote store access."""

from collector.store.client import StoreError, SupabaseClient
from collector.store.writer import StoreWriter

__all__ = [
    "StoreError",
    "StoreWriter",
    "SupabaseClient",
]
