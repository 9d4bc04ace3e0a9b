"""kuiper executor - HTTP request execution."""

import json
import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.status_code: int = 0
        self.reason: str = ""
        self.headers: dict[str, str] = {}
        self.body: Any = None  # parsed JSON or raw text
        self.elapsed_ms: float = 0
        self.error: str | None = None
        self.raw_text: str = ""


def execute_request(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    params: dict[str, str] | None = None,
    body: Any = None,
    timeout: int = 30,
) -> RequestResult:
    """Execute an HTTP request and return structured result.

    - Sends body as JSON when it is not None
    - Attempts to parse response as JSON, falls back to raw text
    - Never raises - transport failures set the error field
    """
    result = RequestResult()

    try:
        kwargs: dict[str, Any] = {
            "method": method.upper(),
            "url": url,
            "headers": headers,
            "params": params or None,
            "timeout": timeout,
        }
        if body is not None:
            kwargs["json"] = body

        logger.debug("sending %s %s", kwargs["method"], url)
        start = time.monotonic()
        resp = requests.request(**kwargs)
        result.elapsed_ms = (time.monotonic() - start) * 1000

        result.status_code = resp.status_code
        result.reason = resp.reason or ""
        result.headers = dict(resp.headers)
        result.raw_text = resp.text

        try:
            result.body = resp.json()
        except (json.JSONDecodeError, ValueError):
            result.body = resp.text

    except requests.exceptions.Timeout:
        result.error = f"Request timed out after {timeout}s"
    except requests.exceptions.SSLError as e:
        result.error = f"TLS error: {e}"
    except requests.exceptions.ConnectionError as e:
        result.error = f"Connection error: {e}"
    except requests.exceptions.RequestException as e:
        result.error = f"Request failed: {e}"
    except Exception as e:
        result.error = f"Unexpected error: {e}"

    if result.error:
        logger.debug("request failed: %s", result.error)
    else:
        logger.debug("received %s in %dms", result.status_code, result.elapsed_ms)
    return result
