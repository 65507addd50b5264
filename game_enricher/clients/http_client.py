from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from ..errors import ProtocolError, ProviderHTTPError, ProviderNetworkError, RateLimitedError
from ..utils.utilities import RateLimiter


@dataclass
class HTTPJSONClient:
    """
    Small helper to standardize request + rate limiting + error mapping + stats counting.

    Provider clients pass in their own `requests.Session`, `stats` dict, and the desired
    rate limiter + counter key per endpoint. There are no retries: a failed call raises a
    ProviderError subclass immediately and the caller decides what that means.
    """

    session: requests.Session
    source: str
    stats: dict[str, Any] | None = None
    _stats_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _bump(self, key: str) -> None:
        if self.stats is None:
            return
        with self._stats_lock:
            self.stats[key] = int(self.stats.get(key, 0) or 0) + 1

    def _bump_ms(self, key: str, elapsed_ms: int) -> None:
        if self.stats is None:
            return
        ms_key = f"{key}_ms"
        with self._stats_lock:
            self.stats[ms_key] = int(self.stats.get(ms_key, 0) or 0) + int(elapsed_ms)

    @staticmethod
    def format_timing(stats: dict[str, Any] | None, *, key: str) -> str:
        """
        Format request counter for a key tracked via `_bump()`.
        """
        if not stats:
            return f"{key}=0"
        return f"{key}={int(stats.get(key, 0) or 0)}"

    def _send(
        self,
        method: str,
        url: str,
        *,
        ratelimiter: RateLimiter | None,
        timeout_s: float,
        counter_key: str,
        context: str,
        **kwargs: Any,
    ) -> requests.Response:
        if ratelimiter is not None:
            ratelimiter.wait()
        self._bump(counter_key)
        t0 = time.perf_counter()
        try:
            if method == "POST":
                r = self.session.post(url, timeout=timeout_s, **kwargs)
            else:
                r = self.session.get(url, timeout=timeout_s, **kwargs)
        except requests.RequestException as e:
            self._bump("network_failures")
            raise ProviderNetworkError(self.source, f"{context}: {type(e).__name__}: {e}") from e
        finally:
            self._bump_ms(counter_key, int(round((time.perf_counter() - t0) * 1000.0)))
        return r

    def _check_status(
        self, r: requests.Response, status_handlers: dict[int, Any] | None, context: str
    ) -> tuple[bool, Any]:
        if status_handlers is not None and r.status_code in status_handlers:
            return True, status_handlers[r.status_code]
        if r.status_code == 429:
            logging.warning(f"[HTTP] {self.source}: {context}: 429 Too Many Requests")
            raise RateLimitedError(self.source, context)
        if not (200 <= int(r.status_code) < 300):
            raise ProviderHTTPError(self.source, int(r.status_code), context)
        return False, None

    def _decode(self, r: requests.Response, context: str) -> Any:
        try:
            return r.json()
        except ValueError as e:
            raise ProtocolError(self.source, f"{context}: invalid JSON: {e}") from e

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        status_handlers: dict[int, Any] | None = None,
        ratelimiter: RateLimiter | None = None,
        timeout_s: float,
        counter_key: str = "http_get",
        context: str,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if params is not None:
            kwargs["params"] = params
        if headers is not None:
            kwargs["headers"] = headers
        r = self._send(
            "GET",
            url,
            ratelimiter=ratelimiter,
            timeout_s=timeout_s,
            counter_key=counter_key,
            context=context,
            **kwargs,
        )
        handled, value = self._check_status(r, status_handlers, context)
        if handled:
            return value
        return self._decode(r, context)

    def post_json(
        self,
        url: str,
        *,
        data: dict[str, Any] | str | None = None,
        json_body: Any | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        status_handlers: dict[int, Any] | None = None,
        ratelimiter: RateLimiter | None = None,
        timeout_s: float,
        counter_key: str = "http_post",
        context: str,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if params is not None:
            kwargs["params"] = params
        if headers is not None:
            kwargs["headers"] = headers
        if data is not None:
            kwargs["data"] = data
        if json_body is not None:
            kwargs["json"] = json_body
        r = self._send(
            "POST",
            url,
            ratelimiter=ratelimiter,
            timeout_s=timeout_s,
            counter_key=counter_key,
            context=context,
            **kwargs,
        )
        handled, value = self._check_status(r, status_handlers, context)
        if handled:
            return value
        return self._decode(r, context)

    def get_bytes(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        ratelimiter: RateLimiter | None = None,
        timeout_s: float,
        counter_key: str = "http_download",
        context: str,
    ) -> tuple[bytes, str]:
        """Download a binary body. Returns (content, content-type)."""
        kwargs: dict[str, Any] = {}
        if headers is not None:
            kwargs["headers"] = headers
        r = self._send(
            "GET",
            url,
            ratelimiter=ratelimiter,
            timeout_s=timeout_s,
            counter_key=counter_key,
            context=context,
            **kwargs,
        )
        self._check_status(r, None, context)
        content_type = str((r.headers or {}).get("Content-Type", "") or "")
        return bytes(r.content or b""), content_type


@dataclass
class HTTPRequestDefaults:
    timeout_s: float
    ratelimiter: RateLimiter | None = None
    headers: dict[str, str] | None = None
    status_handlers: dict[int, Any] | None = None
    counter_key: str = "http_get"
    context_prefix: str | None = None


@dataclass
class ConfiguredHTTPJSONClient:
    """
    Convenience wrapper over HTTPJSONClient that carries default parameters.

    This keeps provider code concise by instantiating a per-endpoint client configured with
    its rate limiter, timeout, counter key, etc.
    """

    http: HTTPJSONClient
    defaults: HTTPRequestDefaults

    def _ctx(self, context: str) -> str:
        prefix = self.defaults.context_prefix
        if prefix:
            return f"{prefix}{': ' if context else ''}{context}"
        return context

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str] | None:
        if headers is None:
            return self.defaults.headers
        if self.defaults.headers is None:
            return headers
        return {**self.defaults.headers, **headers}

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        status_handlers: dict[int, Any] | None = None,
        counter_key: str | None = None,
        context: str = "",
    ) -> Any:
        merged_status = self.defaults.status_handlers if status_handlers is None else status_handlers
        return self.http.get_json(
            url,
            params=params,
            headers=self._headers(headers),
            status_handlers=merged_status,
            ratelimiter=self.defaults.ratelimiter,
            timeout_s=self.defaults.timeout_s,
            counter_key=counter_key or self.defaults.counter_key,
            context=self._ctx(context),
        )

    def post_json(
        self,
        url: str,
        *,
        data: dict[str, Any] | str | None = None,
        json_body: Any | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        status_handlers: dict[int, Any] | None = None,
        counter_key: str | None = None,
        context: str = "",
    ) -> Any:
        merged_status = self.defaults.status_handlers if status_handlers is None else status_handlers
        return self.http.post_json(
            url,
            data=data,
            json_body=json_body,
            params=params,
            headers=self._headers(headers),
            status_handlers=merged_status,
            ratelimiter=self.defaults.ratelimiter,
            timeout_s=self.defaults.timeout_s,
            counter_key=counter_key or self.defaults.counter_key,
            context=self._ctx(context),
        )

    def get_bytes(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        counter_key: str | None = None,
        context: str = "",
    ) -> tuple[bytes, str]:
        return self.http.get_bytes(
            url,
            headers=self._headers(headers),
            ratelimiter=self.defaults.ratelimiter,
            timeout_s=self.defaults.timeout_s,
            counter_key=counter_key or "http_download",
            context=self._ctx(context),
        )
