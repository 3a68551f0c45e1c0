"""HTTP client for the remote asset-management service.

Provides a singleton httpx client initialized on app startup, carrying the
base URL, bearer token and request timeout from settings.
"""

import logging
from typing import Optional
from urllib.parse import unquote

import httpx

from backend.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[httpx.Client] = None


def _auth_headers(token: str) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if token:
        # Tokens copied out of cookies arrive URL-encoded
        decoded = unquote(token) if "%" in token else token
        headers["Authorization"] = f"Bearer {decoded}"
    return headers


def init_asset_client(
    base_url: Optional[str] = None,
    token: Optional[str] = None,
    timeout: Optional[float] = None,
) -> httpx.Client:
    """Initialize the asset service client. Call once at app startup."""
    global _client
    _client = httpx.Client(
        base_url=base_url or settings.asset_api_url,
        headers=_auth_headers(token if token is not None else settings.asset_api_token),
        timeout=timeout or settings.asset_api_timeout,
    )
    logger.info(f"Asset service client initialized for {_client.base_url}")
    return _client


def get_asset_client() -> httpx.Client:
    """Get the active asset service client."""
    if _client is None:
        raise RuntimeError("Asset service client not initialized. Call init_asset_client() first.")
    return _client


def close_asset_client() -> None:
    """Close the client. Call at app shutdown."""
    global _client
    if _client:
        _client.close()
        _client = None
        logger.info("Asset service client closed")


def check_connection() -> bool:
    """Check if the asset service answers on the asset listing endpoint."""
    try:
        if _client is None:
            return False
        response = _client.get(
            f"{settings.anchor_path}/assets", params={"page": 1, "pageSize": 1}
        )
        return response.status_code < 500
    except httpx.HTTPError:
        return False
