"""Energy endpoints — propagate known energy types to ancestor flags."""

from typing import Optional

from fastapi import APIRouter, HTTPException

from backend.core import asset_ops
from backend.core.asset_ops import AssetServiceError
from backend.core.energy_propagation import (
    apply_energy_flags,
    build_parent_map,
    normalize_energy_type,
    propagate_energy_types,
)
from backend.core.models import CreatedAsset, EnergyPropagateRequest, EnergyPropagateResponse

router = APIRouter()


def load_assets(assets: Optional[list[CreatedAsset]]) -> list[CreatedAsset]:
    """Use the given assets, or fetch every asset from the asset service."""
    if assets is not None:
        return assets
    try:
        return asset_ops.get_all_assets()
    except AssetServiceError as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch assets: {e.message}")


def normalize_energy_map(energy_map: dict[str, str]) -> dict[str, str]:
    """Normalize free-text energy values; blank ones are dropped."""
    normalized = {}
    for asset_id, raw in energy_map.items():
        energy_type = normalize_energy_type(raw)
        if energy_type:
            normalized[asset_id] = energy_type
    return normalized


@router.post("/energy/propagate", response_model=EnergyPropagateResponse)
def propagate_energy(body: EnergyPropagateRequest):
    """Compute ancestor energy flags from an asset set and an energy map.

    Without `assets`, the whole asset tree is fetched from the asset service.
    With `apply`, each ancestor is PATCHed; failed updates are listed but
    do not stop the others.
    """
    assets = load_assets(body.assets)
    parent_map = build_parent_map(assets)
    flags = propagate_energy_types(normalize_energy_map(body.energy_map), parent_map)
    failed = apply_energy_flags(flags) if body.apply else []
    return EnergyPropagateResponse(energy_flags=flags, failed_updates=failed)
