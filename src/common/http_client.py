"""Shared HTTP helpers used by the registry clients and the vulnerability lookup.

Encapsulates timeouts, retry-with-backoff and DEBUG traces so modules avoid
duplicating try/except blocks. Failures never raise: after the retry ceiling
the helpers report status 0 with a description of the last error.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def _timeout() -> Tuple[float, float]:
    return (Constants.HTTP_CONNECT_TIMEOUT, Constants.HTTP_READ_TIMEOUT)


def _backoff(attempt: int) -> None:
    """Sleep before the next attempt: base * 2**attempt."""
    delay = Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt)
    if delay > 0:
        time.sleep(delay)


def _request(
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], str]:
    """Perform a request with timeout, retries and DEBUG traces.

    Timeouts, connection/SSL errors and retryable status codes are retried up to
    ``Constants.HTTP_RETRY_MAX`` attempts. Returns (status, headers, text); a
    status of 0 means no usable response was received.
    """
    safe_target = safe_url(url)
    request_headers = {"User-Agent": Constants.USER_AGENT}
    if headers:
        request_headers.update(headers)

    last_exception = None
    attempts = max(1, Constants.HTTP_RETRY_MAX)

    for attempt in range(attempts):
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action=method,
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )

                response = requests.request(
                    method,
                    url,
                    timeout=_timeout(),
                    headers=request_headers,
                    **kwargs
                )

                if response.status_code in Constants.HTTP_RETRY_STATUSES and attempt + 1 < attempts:
                    last_exception = f"HTTP {response.status_code}"
                    if is_debug_enabled(logger):
                        logger.debug(
                            "HTTP retryable status",
                            extra=extra_context(
                                event="http_response",
                                component="http_client",
                                action=method,
                                outcome="retry",
                                status_code=response.status_code,
                                attempt=attempt + 1,
                                target=safe_target
                            )
                        )
                    _backoff(attempt)
                    continue

                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP response",
                        extra=extra_context(
                            event="http_response",
                            component="http_client",
                            action=method,
                            outcome="success",
                            status_code=response.status_code,
                            duration_ms=t.duration_ms(),
                            target=safe_target
                        )
                    )
                return response.status_code, dict(response.headers), response.text

            except requests.Timeout:
                last_exception = "timeout"
                outcome = "timeout"
            except requests.ConnectionError as exc:  # includes SSLError
                last_exception = str(exc)
                outcome = "connection_error"
            except requests.RequestException as exc:
                # Not transient (invalid URL, too many redirects, ...): no retry.
                logger.debug("%s %s failed: %s", method, safe_target, exc)
                return 0, {}, f"Request failed: {exc}"

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP exception",
                extra=extra_context(
                    event="http_exception",
                    component="http_client",
                    action=method,
                    outcome=outcome,
                    attempt=attempt + 1,
                    target=safe_target
                )
            )
        if attempt + 1 < attempts:
            _backoff(attempt)

    return 0, {}, f"Request failed after {attempts} attempts: {last_exception}"


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], str]:
    """GET with timeout and retries. See ``_request``."""
    return _request("GET", url, headers=headers, **kwargs)


def _decode(status_code: int, text: str, url: str) -> Optional[Any]:
    if status_code != 200 or not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        if is_debug_enabled(logger):
            logger.debug(
                "JSON decode error",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    action="decode_json",
                    outcome="json_decode_error",
                    status_code=status_code,
                    target=safe_url(url)
                )
            )
        return None


def get_json(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Perform GET request and parse JSON response.

    Args:
        url: Target URL
        headers: Optional request headers
        **kwargs: Additional requests parameters

    Returns:
        Tuple of (status_code, headers_dict, parsed_json_or_none). The body text
        is returned in place of the JSON when the status is 0 so callers can
        report why the request failed.
    """
    status_code, response_headers, text = robust_get(url, headers=headers, **kwargs)
    if status_code == 0:
        return status_code, response_headers, text
    return status_code, response_headers, _decode(status_code, text, url)


def post_json(
    url: str,
    payload: Any,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """POST a JSON payload and parse the JSON response.

    Same return contract as ``get_json``.
    """
    request_headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if headers:
        request_headers.update(headers)
    status_code, response_headers, text = _request(
        "POST", url, headers=request_headers, data=json.dumps(payload), **kwargs
    )
    if status_code == 0:
        return status_code, response_headers, text
    return status_code, response_headers, _decode(status_code, text, url)
