"""Asset endpoints — browse the asset service and the created-asset cache."""

from fastapi import APIRouter, HTTPException, Query

from backend.core import asset_ops
from backend.core.asset_cache import get_cached_asset
from backend.core.asset_ops import AssetServiceError

router = APIRouter()


@router.get("/assets")
def list_assets(
    page: int = Query(1, ge=1),
    page_size: int = Query(asset_ops.ASSET_PAGE_SIZE, ge=1, le=1000),
):
    """List one page of assets from the asset service."""
    try:
        assets, total = asset_ops.get_assets(page, page_size)
    except AssetServiceError as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch assets: {e.message}")
    return {
        "assets": [a.model_dump(by_alias=True) for a in assets],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.get("/assets/cached")
async def get_cached(external_id: str = Query(..., min_length=1)):
    """Look up a created asset by externalId (its full hierarchy path)."""
    asset = get_cached_asset(external_id)
    if asset is None:
        raise HTTPException(status_code=404, detail=f"No cached asset for '{external_id}'")
    return asset.model_dump(by_alias=True)
