import json
import logging
import time
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

from ..errors import HttpStatusError, TransportError


logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "alumni-fantasy/0.1"


def _encode_body(body: Any, headers: Dict[str, str]) -> Optional[bytes]:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    headers.setdefault("Content-Type", "application/json")
    return json.dumps(body).encode("utf-8")


def http_request(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
    timeout: float = 15.0,
    retries: int = 0,
    backoff_seconds: float = 0.0,
) -> bytes:
    """Perform one HTTP request and return the raw body.

    Status failures raise ``HttpStatusError``; anything else that prevents a
    response raises ``TransportError``. Client errors (4xx) are never retried,
    and nothing is retried unless the caller asks for it.
    """
    request_headers = {"User-Agent": DEFAULT_USER_AGENT}
    request_headers.update({str(key): str(value) for key, value in dict(headers or {}).items()})
    data = _encode_body(body, request_headers)

    attempts = max(0, int(retries)) + 1
    last_error: Optional[TransportError] = None
    for attempt in range(attempts):
        try:
            request = urllib.request.Request(url=url, data=data, headers=request_headers, method=method)
            with urllib.request.urlopen(request, timeout=timeout) as response:
                return response.read()
        except urllib.error.HTTPError as exc:
            last_error = HttpStatusError(url, exc.code)
            if exc.code < 500:
                raise last_error from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            last_error = TransportError(url, f"request to {url} failed: {exc}")

        if attempt + 1 < attempts:
            logger.debug("retrying %s %s after %s", method, url, last_error)
            if backoff_seconds > 0:
                time.sleep(backoff_seconds)

    raise last_error


def http_json(
    url: str,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
    timeout: float = 15.0,
    retries: int = 0,
    backoff_seconds: float = 0.0,
) -> Any:
    raw = http_request(
        url,
        method=method,
        headers=headers,
        body=body,
        timeout=timeout,
        retries=retries,
        backoff_seconds=backoff_seconds,
    )
    if not raw:
        return None
    return json.loads(raw.decode("utf-8"))
