"""Asset Service Access Layer — wrappers for the remote asset API calls.

All calls go through asset_client.get_asset_client(). Transport and HTTP
errors are raised as AssetServiceError, carrying the server's errorKey and
message when the error body provides them.
"""

import logging
from typing import Any, Optional

import httpx

from backend.core.asset_client import get_asset_client
from backend.core.config import settings
from backend.core.models import AssetToCreate, BulkCreateResponse, CreatedAsset, Variable

logger = logging.getLogger(__name__)

ASSET_PAGE_SIZE = 100


class AssetServiceError(RuntimeError):
    """A call to the asset service failed (transport, timeout or HTTP status)."""

    def __init__(self, message: str, error_key: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.error_key = error_key
        self.status_code = status_code


def _error_from_response(response: httpx.Response) -> AssetServiceError:
    error_key = None
    message = f"HTTP {response.status_code} from {response.request.method} {response.request.url.path}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error_key = body.get("errorKey")
        if body.get("message"):
            message = f"{message}: {body['message']}"
    return AssetServiceError(message, error_key=error_key, status_code=response.status_code)


def _request(method: str, path: str, **kwargs) -> httpx.Response:
    client = get_asset_client()
    try:
        response = client.request(method, path, **kwargs)
    except httpx.TimeoutException as e:
        raise AssetServiceError(f"Request timed out: {method} {path}") from e
    except httpx.HTTPError as e:
        raise AssetServiceError(f"Request failed: {method} {path}: {e}") from e
    if response.is_error:
        raise _error_from_response(response)
    return response


# ---------------------------------------------------------------------------
# Asset creation
# ---------------------------------------------------------------------------

def bulk_create_assets(chunk: list[AssetToCreate]) -> BulkCreateResponse:
    """Create a chunk of assets in one call.

    The response lists per-index errors and, separately, the successes in the
    relative order of the non-errored inputs.
    """
    payload = [a.model_dump(by_alias=True) for a in chunk]
    response = _request("POST", settings.assets_bulk_create_path, json=payload)
    try:
        data = response.json()
    except ValueError as e:
        raise AssetServiceError("Bulk create returned a non-JSON body") from e
    return BulkCreateResponse.model_validate(data or {})


# ---------------------------------------------------------------------------
# Attributes and updates
# ---------------------------------------------------------------------------

def add_asset_attribute(asset_id: str, key: str, value: str) -> None:
    """Attach a key/value attribute to an asset."""
    _request(
        "POST",
        f"{settings.anchor_path}/assets/{asset_id}/attributes",
        json={"key": key, "value": value},
    )


def update_asset(asset_id: str, updates: dict[str, Any]) -> None:
    """Partially update an asset (PATCH)."""
    _request("PATCH", f"{settings.anchor_path}/assets/{asset_id}", json=updates)


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------

def bulk_create_variables(chunk: list[Variable]) -> None:
    """Create a chunk of variables in one call. The service accepts or rejects the chunk as a whole."""
    payload = [v.model_dump(mode="json", by_alias=True, exclude_none=True) for v in chunk]
    _request("POST", settings.variables_bulk_create_path, json=payload)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

def get_assets(page: int = 1, page_size: int = ASSET_PAGE_SIZE) -> tuple[list[CreatedAsset], int]:
    """Fetch one page of assets. Returns (assets, total)."""
    response = _request(
        "GET",
        f"{settings.anchor_path}/assets",
        params={"page": page, "pageSize": page_size},
    )
    data = response.json()
    assets = [
        CreatedAsset(
            asset_id=raw.get("id") or raw.get("assetId"),
            name=raw.get("name", ""),
            parent_id=raw.get("parentId"),
            external_id=raw.get("externalId"),
        )
        for raw in data.get("assets", [])
    ]
    return assets, int(data.get("total", 0))


def get_all_assets(page_size: int = ASSET_PAGE_SIZE) -> list[CreatedAsset]:
    """Fetch every asset, following pagination until `total` is reached."""
    all_assets: list[CreatedAsset] = []
    page = 1
    while True:
        assets, total = get_assets(page, page_size)
        all_assets.extend(assets)
        if page * page_size >= total or not assets:
            break
        page += 1
    logger.info(f"Fetched {len(all_assets)} assets in {page} page(s)")
    return all_assets
