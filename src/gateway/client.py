# HTTP transport to the gateway; provides helpers internal to the gateway package
import asyncio
import uuid
from typing import Any, Dict, Optional

import requests

from core.errors import GatewayTimeoutError, RemoteError
from utils.logger import get_logger

_logger = get_logger(__name__)

GENERIC_ERROR = "The storefront service could not complete the request."


def extract_error_message(payload: Any, fallback: str = GENERIC_ERROR) -> str:
    """
    Pull the most specific message out of a gateway error payload.

    Accepts a bare string, {"error": "..."}, {"error": {"message": "..."}}
    or {"message": "..."}; anything else yields the fallback.
    """
    if isinstance(payload, str):
        return payload.strip() or fallback
    if not isinstance(payload, dict):
        return fallback

    error = payload.get("error")
    if isinstance(error, str) and error:
        return error
    if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
        return error["message"]

    message = payload.get("message")
    if isinstance(message, str) and message:
        return message
    return fallback


def extract_error_code(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), str):
            return error["code"]
        if isinstance(payload.get("code"), str):
            return payload["code"]
    return None


def _decode(resp: requests.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


class GatewayClient:
    """
    Blocking requests.Session driven from a worker thread, so the Textual
    event loop only ever suspends at network boundaries.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = http or requests.Session()

    async def request(
        self,
        method: str,
        path: str,
        *,
        authorization: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        fallback: str = GENERIC_ERROR,
    ) -> Any:
        return await asyncio.to_thread(
            self._send, method, path, authorization, json, headers, fallback
        )

    def _send(
        self,
        method: str,
        path: str,
        authorization: Optional[str],
        json: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]],
        fallback: str,
    ) -> Any:
        correlation_id = str(uuid.uuid4())
        req_headers = {"Accept": "application/json", "X-Correlation-Id": correlation_id}
        if authorization:
            req_headers["Authorization"] = authorization
        if headers:
            req_headers.update(headers)

        url = f"{self.base_url}{path}"
        _logger.debug(f"{method} {path} (correlation {correlation_id})")
        try:
            resp = self._http.request(
                method, url, json=json, headers=req_headers, timeout=self.timeout
            )
        except requests.exceptions.Timeout as exc:
            _logger.warning(f"{method} {path} timed out after {self.timeout:g}s")
            raise GatewayTimeoutError(
                f"{fallback} (no response within {self.timeout:g}s)"
            ) from exc
        except requests.exceptions.RequestException as exc:
            _logger.warning(f"{method} {path} failed: {exc}")
            raise RemoteError(fallback) from exc

        payload = _decode(resp)
        _logger.debug(f"{method} {path} -> {resp.status_code}")
        if resp.status_code >= 400:
            raise RemoteError(
                extract_error_message(payload, fallback),
                status=resp.status_code,
                code=extract_error_code(payload),
            )
        return payload

    def close(self) -> None:
        self._http.close()
