from .blob import BlobRef, BlobStore
from .kv import KVStore
from .tiered import DEFAULT_TTL_SECONDS, TieredCache, cache_key, sanitize_for_blob

__all__ = [
    "BlobRef",
    "BlobStore",
    "KVStore",
    "DEFAULT_TTL_SECONDS",
    "TieredCache",
    "cache_key",
    "sanitize_for_blob",
]
