import json
import logging
import urllib.parse
from typing import Any, Optional

from ..errors import HttpStatusError, TransportError
from ..sources.http import http_json, http_request


logger = logging.getLogger(__name__)


class KVStore:
    """Upstash-style REST key/value store.

    Every method degrades to a miss (``None`` / ``False``) when the store is
    unconfigured or the request fails; failures are logged, never raised.
    """

    def __init__(self, url: Optional[str] = None, token: Optional[str] = None, timeout_seconds: float = 10.0):
        self.url = (url or "").strip().rstrip("/")
        self.token = (token or "").strip()
        self.timeout_seconds = float(timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self.url and self.token)

    def _endpoint(self, action: str, key: str) -> str:
        return f"{self.url}/{action}/{urllib.parse.quote(str(key), safe='')}"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}

    def get(self, key: str) -> Any:
        if not self.configured:
            return None
        try:
            payload = http_json(self._endpoint("get", key), headers=self._headers(), timeout=self.timeout_seconds)
        except HttpStatusError as exc:
            if exc.status != 404:
                logger.warning("kv get failed for %s: %s", key, exc)
            return None
        except (TransportError, ValueError) as exc:
            logger.warning("kv get failed for %s: %s", key, exc)
            return None

        if not isinstance(payload, dict):
            return None
        raw = payload.get("result", payload.get("value"))
        if raw is None:
            return None
        if isinstance(raw, str):
            try:
                return json.loads(raw)
            except ValueError:
                return raw
        return raw

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        if not self.configured:
            return False
        body = {"value": json.dumps(value)}
        if ttl_seconds and int(ttl_seconds) > 0:
            body["expiration"] = int(ttl_seconds)
        try:
            http_request(
                self._endpoint("set", key),
                method="POST",
                headers=self._headers(),
                body=body,
                timeout=self.timeout_seconds,
            )
        except TransportError as exc:
            logger.warning("kv set failed for %s: %s", key, exc)
            return False
        return True

    def delete(self, key: str) -> bool:
        if not self.configured:
            return False
        try:
            http_request(self._endpoint("del", key), method="POST", headers=self._headers(), timeout=self.timeout_seconds)
        except TransportError as exc:
            logger.warning("kv delete failed for %s: %s", key, exc)
            return False
        return True
