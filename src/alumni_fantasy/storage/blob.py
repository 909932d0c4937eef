import json
import logging
import re
import urllib.parse
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import HttpStatusError, TransportError
from ..sources.http import http_json, http_request


logger = logging.getLogger(__name__)

DEFAULT_BLOB_BASE_URL = "https://blob.vercel-storage.com"


@dataclass
class BlobRef:
    url: str
    pathname: str


class BlobStore:
    def __init__(self, token: Optional[str] = None, base_url: Optional[str] = None, timeout_seconds: float = 10.0):
        self.token = (token or "").strip()
        self.base_url = (base_url or DEFAULT_BLOB_BASE_URL).strip().rstrip("/")
        self.timeout_seconds = float(timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def _url(self, path: str) -> str:
        clean = re.sub(r"\s+", "-", str(path).lstrip("/"))
        return f"{self.base_url}/{clean}"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}

    def put_json(self, path: str, value: Any) -> Optional[BlobRef]:
        if not self.configured:
            return None
        target = self._url(path)
        headers = self._headers()
        headers.update({"Content-Type": "application/json", "x-add-random-suffix": "false"})
        try:
            raw = http_request(
                target,
                method="PUT",
                headers=headers,
                body=json.dumps(value).encode("utf-8"),
                timeout=self.timeout_seconds,
            )
        except TransportError as exc:
            logger.warning("blob put failed for %s: %s", target, exc)
            return None

        try:
            payload = json.loads(raw.decode("utf-8")) if raw else {}
        except ValueError:
            payload = {}
        payload = payload if isinstance(payload, dict) else {}
        pathname = payload.get("pathname") or urllib.parse.urlparse(target).path
        return BlobRef(url=payload.get("url") or target, pathname=str(pathname))

    def head(self, path: str) -> Optional[BlobRef]:
        if not self.configured:
            return None
        target = self._url(path)
        try:
            http_request(target, method="HEAD", headers=self._headers(), timeout=self.timeout_seconds)
        except HttpStatusError as exc:
            if exc.status != 404:
                logger.warning("blob head failed for %s: %s", target, exc)
            return None
        except TransportError as exc:
            logger.warning("blob head failed for %s: %s", target, exc)
            return None
        return BlobRef(url=target, pathname=urllib.parse.urlparse(target).path)

    def get_json(self, path: str) -> Any:
        if not self.configured:
            return None
        target = self._url(path)
        try:
            return http_json(target, headers=self._headers(), timeout=self.timeout_seconds)
        except HttpStatusError as exc:
            if exc.status != 404:
                logger.warning("blob get failed for %s: %s", target, exc)
            return None
        except (TransportError, ValueError) as exc:
            logger.warning("blob get failed for %s: %s", target, exc)
            return None

    def delete(self, path: str) -> bool:
        if not self.configured:
            return False
        target = self._url(path)
        try:
            http_request(target, method="DELETE", headers=self._headers(), timeout=self.timeout_seconds)
        except TransportError as exc:
            logger.warning("blob delete failed for %s: %s", target, exc)
            return False
        return True
