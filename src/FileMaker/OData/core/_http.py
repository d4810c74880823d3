# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
HTTP transport with retry, backoff and timeout handling.

:class:`_HttpClient` wraps :mod:`requests`. Connection failures and transient
status codes (429, 502, 503, 504) are retried with exponential backoff;
timeouts are never retried so a per-call timeout bounds the whole call.
"""

from __future__ import annotations

import random
import time
from typing import Any, Optional

import requests

from ._error_codes import TRANSIENT_STATUS_CODES


class _HttpClient:
    """
    HTTP client with configurable retry logic, timeout handling, and optional session support.

    :param retries: Maximum number of retry attempts after the first try. Default is 5.
    :type retries: :class:`int` | None
    :param backoff: Base delay in seconds between retry attempts. Default is 0.5.
    :type backoff: :class:`float` | None
    :param max_backoff: Upper bound for any single delay in seconds. Default is 60.
    :type max_backoff: :class:`float` | None
    :param timeout: Default request timeout in seconds. If None, uses per-method defaults.
    :type timeout: :class:`float` | None
    :param jitter: Add +/-25% random variation to delays. Default is True.
    :type jitter: :class:`bool` | None
    :param retry_transient_errors: Retry 429/502/503/504 responses. Default is True.
    :type retry_transient_errors: :class:`bool` | None
    :param session: Optional requests.Session for connection pooling.
    :type session: :class:`requests.Session` | None
    """

    def __init__(
        self,
        retries: Optional[int] = None,
        backoff: Optional[float] = None,
        max_backoff: Optional[float] = None,
        timeout: Optional[float] = None,
        jitter: Optional[bool] = None,
        retry_transient_errors: Optional[bool] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.max_retries = retries if retries is not None else 5
        self.base_delay = backoff if backoff is not None else 0.5
        self.max_backoff = max_backoff if max_backoff is not None else 60.0
        self.default_timeout: Optional[float] = timeout
        self.jitter = jitter if jitter is not None else True
        self.retry_transient_errors = retry_transient_errors if retry_transient_errors is not None else True
        self._session = session

    def resolve_timeout(self, method: str, timeout: Optional[float] = None) -> float:
        """
        Return the timeout applied to a request.

        An explicit per-call value wins, then the configured default, then the
        per-method default (120s for POST/PATCH/DELETE, 10s for others).
        """
        if timeout is not None:
            return timeout
        if self.default_timeout is not None:
            return self.default_timeout
        return 120 if (method or "").lower() in ("post", "patch", "delete") else 10

    def _request(
        self,
        method: str,
        url: str,
        *,
        session: Optional[requests.Session] = None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Execute an HTTP request with retries.

        :param method: HTTP method.
        :type method: :class:`str`
        :param url: Target URL.
        :type url: :class:`str`
        :param session: Per-call session overriding the client's own.
        :type session: :class:`requests.Session` | None
        :param kwargs: Passed to ``requests.request()`` or ``session.request()``.
        :return: The final response, which may carry a non-2xx status.
        :rtype: :class:`requests.Response`
        :raises requests.exceptions.Timeout: Immediately, without retrying.
        :raises requests.exceptions.RequestException: When all retry attempts fail.
        """
        kwargs["timeout"] = self.resolve_timeout(method, kwargs.get("timeout"))
        transport = session if session is not None else self._session

        attempts = max(1, self.max_retries + 1)
        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                if transport is not None:
                    response = transport.request(method, url, **kwargs)
                else:
                    response = requests.request(method, url, **kwargs)
            except requests.exceptions.Timeout:
                raise
            except requests.exceptions.RequestException:
                if last:
                    raise
                time.sleep(self._retry_delay(attempt))
                continue

            if self.retry_transient_errors and response.status_code in TRANSIENT_STATUS_CODES and not last:
                time.sleep(self._retry_delay(attempt, response))
                continue
            return response

        raise RuntimeError("Unexpected end of retry loop")

    def _retry_delay(self, attempt: int, response: Optional[requests.Response] = None) -> float:
        """
        Delay before the next attempt.

        An integer ``Retry-After`` header wins (capped at ``max_backoff``);
        otherwise ``base_delay * 2**attempt`` capped at ``max_backoff``, with
        +/-25% jitter when enabled.
        """
        if response is not None and "Retry-After" in response.headers:
            try:
                return min(int(response.headers["Retry-After"]), self.max_backoff)
            except (ValueError, TypeError):
                pass

        delay = min(self.base_delay * (2**attempt), self.max_backoff)
        if self.jitter:
            spread = delay * 0.25
            delay = max(0.0, delay + random.uniform(-spread, spread))
        return delay

    def close(self) -> None:
        """Close the owned session, if any. Safe to call multiple times."""
        if self._session is not None:
            self._session.close()
            self._session = None
