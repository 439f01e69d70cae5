"""
JiraClient: JSON-first HTTP client for the Jira Cloud REST API.

- requests.Session with HTTP Basic auth (email + API token) and JSON headers.
- One fixed per-request timeout (30s by default).
- HTTP 429: honour an integer Retry-After, sleep, re-issue the same request.
  The number of waits per call is bounded (ClientOptions.max_rate_limit_waits).
- Other non-2xx: decoded into ApiError (errorMessages / errors / raw body).
- 2xx with an undecodable body: ResponseDecodeError (terminal).
- Network failures: TransportError (status 0), never retried.

Usage:
    client = JiraClient("https://acme.atlassian.net", "me@acme.io", token)
    project = client.get_json("/rest/api/3/project/ACME")
"""

from __future__ import annotations

import json
import logging
import time
import uuid
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import requests
import urllib3
from requests.auth import HTTPBasicAuth

from .errors import ApiError, RateLimitedError, ResponseDecodeError, TransportError

log = logging.getLogger(__name__)

JSON = Union[Dict[str, Any], List[Any]]

_LOG_PREVIEW = 600
_REDACT_KEYS = {"token", "api_token", "authorization", "password", "secret"}


def _short_json(obj: Any, limit: int = _LOG_PREVIEW) -> str:
    try:
        if isinstance(obj, (dict, list)):
            s = json.dumps(obj, ensure_ascii=False)
        else:
            s = str(obj)
        return s[:limit]
    except (TypeError, ValueError):
        return f"<unserializable:{type(obj).__name__}>"


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if str(k).lower() in _REDACT_KEYS:
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Return the wait in whole seconds, or None when the header is unusable."""
    if value is None:
        return None
    text = value.strip()
    if not text.isdigit():
        return None
    return int(text)


def _decode_error(resp: requests.Response, url: str) -> ApiError:
    body = resp.text or ""
    messages: List[str] = []
    field_errors: Dict[str, str] = {}
    try:
        data = resp.json() if body.strip() else {}
    except ValueError:
        data = {}
    if isinstance(data, dict):
        messages = [str(m) for m in (data.get("errorMessages") or []) if m]
        errors = data.get("errors") or {}
        if isinstance(errors, dict):
            field_errors = {str(k): str(v) for k, v in errors.items()}
    return ApiError(
        status_code=resp.status_code,
        messages=messages,
        field_errors=field_errors,
        body=body,
        url=url,
    )


def is_not_found(err: BaseException) -> bool:
    """True iff *err* is an API error carrying HTTP 404."""
    return isinstance(err, ApiError) and err.status_code == 404


@dataclass
class ClientOptions:
    """Runtime options for :class:`JiraClient`.

    Attributes:
        verify: If False, TLS certificate verification is disabled.
        timeout_sec: Per-request timeout (seconds).
        max_rate_limit_waits: Maximum number of 429 waits for a single call.
        suppress_insecure_warning: Silence urllib3 warnings when ``verify`` is False.
    """
    verify: bool = True
    timeout_sec: float = 30
    max_rate_limit_waits: int = 5
    suppress_insecure_warning: bool = True


class JiraClient:
    """HTTP client for the Jira Cloud REST API.

    The session, credentials and base URL are fixed at construction time; the
    client keeps no other state between calls.

    Args:
        base_url: Site URL, e.g. ``https://acme.atlassian.net``.
        email: Account email used for Basic auth.
        api_token: API token used for Basic auth.
        options: Optional :class:`ClientOptions`.
        session: Optional pre-built ``requests.Session`` (tests, proxies).
        sleep: Function used to wait on HTTP 429; injectable for tests.
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        *,
        options: Optional[ClientOptions] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.options = options or ClientOptions()
        self._sleep = sleep

        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth(email, api_token)
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "jirasync/HTTPClient",
        })

        if not self.options.verify and self.options.suppress_insecure_warning:
            warnings.filterwarnings("ignore", category=urllib3.exceptions.InsecureRequestWarning)
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    # ---------------- low-level ----------------
    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def execute(
        self,
        method: str,
        path: str,
        body: Optional[JSON] = None,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Optional[JSON]:
        """Send one logical request and return the decoded JSON body.

        Returns ``None`` for an empty 2xx body (e.g. 204).

        Raises:
            RateLimitedError: 429 without a usable Retry-After, or too many waits already.
            ApiError: Any other non-2xx answer.
            ResponseDecodeError: 2xx answer that is not JSON.
            TransportError: Connection-level failure.
        """
        method = method.upper()
        url = self._url(path)
        corr = uuid.uuid4().hex[:8]
        waits = 0

        log.debug(
            "%s[%s] %s params=%s body=%s",
            method, corr, path, params or {}, _short_json(_redact(body)) if body is not None else "-",
        )
        while True:
            start = time.time()
            try:
                resp = self.session.request(
                    method=method,
                    url=url,
                    json=body,
                    params=params,
                    timeout=self.options.timeout_sec,
                    verify=self.options.verify,
                )
            except requests.RequestException as exc:
                log.error("%s[%s] %s failed: %s", method, corr, path, exc)
                raise TransportError(method=method, url=url, message=str(exc)) from exc

            elapsed = (time.time() - start) * 1000
            status = resp.status_code

            if status == 429:
                header = resp.headers.get("Retry-After")
                delay = _parse_retry_after(header)
                if delay is None or waits >= self.options.max_rate_limit_waits:
                    log.error(
                        "%s[%s] %s rate limited (Retry-After=%r, waits=%d); giving up",
                        method, corr, path, header, waits,
                    )
                    err = _decode_error(resp, url)
                    raise RateLimitedError(
                        status_code=429,
                        messages=err.messages,
                        field_errors=err.field_errors,
                        body=err.body,
                        url=url,
                        retry_after=header or "",
                        attempts=waits,
                    )
                waits += 1
                log.warning(
                    "%s[%s] %s rate limited; waiting %ss (wait %d/%d)",
                    method, corr, path, delay, waits, self.options.max_rate_limit_waits,
                )
                self._sleep(delay)
                continue

            if not 200 <= status < 300:
                err = _decode_error(resp, url)
                log.error("%s[%s] %s -> %s in %.1fms: %s", method, corr, path, status, elapsed, err)
                raise err

            log.debug("%s[%s] %s -> %s in %.1fms", method, corr, path, status, elapsed)
            return self._decode(resp, url)

    @staticmethod
    def _decode(resp: requests.Response, url: str) -> Optional[JSON]:
        raw = resp.text or ""
        if resp.status_code == 204 or not raw.strip():
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise ResponseDecodeError(
                status_code=resp.status_code, url=url, body=raw[:_LOG_PREVIEW], message=str(exc)
            ) from exc

    # ---------------- JSON helpers ----------------
    def get_json(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Optional[JSON]:
        """GET a JSON resource."""
        return self.execute("GET", path, params=params)

    def post_json(
        self, path: str, data: Optional[JSON] = None, *, params: Optional[Dict[str, Any]] = None
    ) -> Optional[JSON]:
        """POST a JSON payload and return the parsed answer."""
        return self.execute("POST", path, data, params=params)

    def put_json(
        self, path: str, data: Optional[JSON] = None, *, params: Optional[Dict[str, Any]] = None
    ) -> Optional[JSON]:
        """PUT a JSON payload and return the parsed answer."""
        return self.execute("PUT", path, data, params=params)

    def delete(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Optional[JSON]:
        """DELETE a resource; ``params`` covers the name-keyed legacy endpoints."""
        return self.execute("DELETE", path, params=params)
