import logging
import re
from typing import Any, List, Optional

from ..alumni_types import PersistResult, StorageConfig
from ..errors import PersistenceExhaustedError
from .blob import BlobStore
from .kv import KVStore


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 30

_BLOB_UNSAFE = re.compile(r"[^a-zA-Z0-9:_/\-]")


def sanitize_for_blob(key: str) -> str:
    normalized = _BLOB_UNSAFE.sub("-", str(key))
    segments = [segment for segment in normalized.split(":") if segment]
    return f"alumni/{'/'.join(segments)}.json"


def cache_key(dataset: str, season: int, week: Optional[int] = None, *parts: Any) -> str:
    tokens = [str(dataset), str(int(season))]
    if week is not None:
        tokens.append(str(int(week)))
    tokens.extend(str(part) for part in parts if part is not None and str(part) != "")
    return ":".join(tokens)


class TieredCache:
    """Write-through cache over a key/value store with a blob store behind it.

    Writes are skipped when either tier already holds the key, unless forced.
    A write that neither tier accepts raises ``PersistenceExhaustedError``.
    """

    def __init__(self, kv: Optional[KVStore] = None, blob: Optional[BlobStore] = None, default_ttl: int = DEFAULT_TTL_SECONDS):
        self.kv = kv or KVStore()
        self.blob = blob or BlobStore()
        self.default_ttl = int(default_ttl)

    @classmethod
    def from_config(cls, config: StorageConfig) -> "TieredCache":
        return cls(
            kv=KVStore(config.kv_url, config.kv_token, timeout_seconds=config.timeout_seconds),
            blob=BlobStore(config.blob_token, config.blob_base_url, timeout_seconds=config.timeout_seconds),
            default_ttl=config.default_ttl_seconds,
        )

    def persist(self, key: str, value: Any, ttl: Optional[int] = None, force: bool = False) -> PersistResult:
        blob_key = sanitize_for_blob(key)
        if not force:
            if self.kv.get(key) is not None:
                logger.debug("kv already holds %s", key)
                return PersistResult(key=key, backend="kv", stored=False, skipped=True)
            if self.blob.configured:
                existing = self.blob.head(blob_key)
                if existing is not None:
                    logger.debug("blob already holds %s", blob_key)
                    return PersistResult(key=existing.pathname or blob_key, backend="blob", stored=False, skipped=True, url=existing.url)

        errors: List[str] = []
        if self.kv.set(key, value, ttl if ttl is not None else self.default_ttl):
            return PersistResult(key=key, backend="kv", stored=True)
        errors.append("kv_unconfigured" if not self.kv.configured else "kv_write_failed")

        stored = self.blob.put_json(blob_key, value)
        if stored is not None:
            return PersistResult(key=stored.pathname, backend="blob", stored=True, url=stored.url)
        errors.append("blob_unconfigured" if not self.blob.configured else "blob_write_failed")

        raise PersistenceExhaustedError(key, errors)

    def read(self, key: str) -> Any:
        value = self.kv.get(key)
        if value is not None:
            return value
        return self.blob.get_json(sanitize_for_blob(key))
