# manages the http session to the storefront api, provides request helpers internal to api package
import asyncio
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from api.errors import ApiError, TransportError
from utils.logger import get_logger

_logger = get_logger(__name__)

API_BASE_URL = os.getenv("STOREFRONT_API_URL", "http://localhost:4000/api")

_session: Optional[requests.Session] = None


def get_session() -> requests.Session:
    """Return the shared session, creating it on first use."""
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update({"Accept": "application/json"})
    return _session


def close_session() -> None:
    global _session
    if _session is not None:
        _session.close()
        _session = None


def build_url(*segments) -> str:
    """Join path segments onto API_BASE_URL, quoting each one (emails, ids)."""
    path = "/".join(quote(str(s), safe="") for s in segments)
    return f"{API_BASE_URL.rstrip('/')}/{path}"


async def _send(method: str, url: str, payload: Optional[Dict[str, Any]] = None):
    """
    Issue exactly one request on a worker thread so the event loop keeps running.
    No timeout and no retry.
    """
    session = get_session()
    _logger.debug(f"{method} {url}")
    kwargs = {}
    if payload is not None:
        kwargs["json"] = payload
    try:
        return await asyncio.to_thread(session.request, method, url, **kwargs)
    except requests.RequestException as e:
        _logger.warning(f"{method} {url} failed: {e}")
        raise TransportError(f"Unable to reach the server: {e}") from e


def _decode(response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        raise ApiError(
            f"Invalid response from server (HTTP {response.status_code})",
            response.status_code,
        ) from e
    if not isinstance(data, dict):
        raise ApiError(
            f"Unexpected response from server (HTTP {response.status_code})",
            response.status_code,
        )
    return data


def _raise_for_status(response, data: Dict[str, Any]) -> None:
    if response.ok:
        return
    message = data.get("error") or data.get("message") or "Request failed"
    _logger.warning(f"HTTP {response.status_code}: {message}")
    raise ApiError(str(message), response.status_code)


async def read(*segments) -> Dict[str, Any]:
    """GET and decode. Status is not checked, reads assume a well-formed success."""
    response = await _send("GET", build_url(*segments))
    return _decode(response)


async def write(
    method: str, *segments, payload: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Send a mutation and decode it. Raises ApiError with the server message on failure."""
    response = await _send(method, build_url(*segments), payload)
    data = _decode(response)
    _raise_for_status(response, data)
    return data


async def delete(*segments) -> None:
    """DELETE; the body is only decoded when the status is a failure."""
    response = await _send("DELETE", build_url(*segments))
    if response.ok:
        return
    _raise_for_status(response, _decode(response))
