"""Energy Propagation — pushes leaf energy types up the asset hierarchy.

Leaves carry one categorical energy type each ("electricity", "gas", ...).
Every ancestor of a tagged leaf receives an EnergyFlags record with one
boolean per energy type present anywhere below it. The flags are then
written back to the asset service with one PATCH per ancestor.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from backend.core import asset_ops
from backend.core.asset_ops import AssetServiceError
from backend.core.config import settings
from backend.core.models import CreatedAsset, EnergyFlags, EnergyType

logger = logging.getLogger(__name__)

EnergyMap = dict[str, str]
ParentMap = dict[str, str]

ENERGY_TYPE_ATTRIBUTE = "energyType"

# Substrings recognized in free-text energy values, checked in this order.
_ENERGY_KEYWORDS: list[tuple[EnergyType, tuple[str, ...]]] = [
    (EnergyType.ELECTRICITY, ("elec", "élec")),
    (EnergyType.GAS, ("gaz", "gas")),
    (EnergyType.THERMAL, ("therm", "chaleur", "heat", "vapeur", "steam")),
    (EnergyType.WATER, ("eau", "water")),
]

_FLAG_FIELDS = {
    EnergyType.ELECTRICITY.value: "is_electricity",
    EnergyType.GAS.value: "is_gas",
    EnergyType.WATER.value: "is_water",
    EnergyType.THERMAL.value: "is_thermal",
}


@dataclass
class PropagationOutcome:
    energy_map: EnergyMap = field(default_factory=dict)
    energy_flags: dict[str, EnergyFlags] = field(default_factory=dict)
    failed_updates: list[str] = field(default_factory=list)


def normalize_energy_type(raw: Optional[str]) -> Optional[str]:
    """Map a free-text energy value ("Elec", "Gaz", "Eau", ...) to an EnergyType value.

    Blank input returns None; unrecognized text returns "other".
    """
    if raw is None:
        return None
    text = str(raw).strip().lower()
    if not text:
        return None
    for energy_type, keywords in _ENERGY_KEYWORDS:
        if any(k in text for k in keywords):
            return energy_type.value
    return EnergyType.OTHER.value


def _has_parent(asset: CreatedAsset, root_parent_id: str) -> bool:
    return bool(asset.parent_id) and asset.parent_id != root_parent_id


def build_parent_map(assets: Iterable[CreatedAsset], root_parent_id: Optional[str] = None) -> ParentMap:
    """Child asset id -> parent asset id. Roots are left out."""
    root_id = root_parent_id if root_parent_id is not None else settings.root_parent_id
    return {a.asset_id: a.parent_id for a in assets if _has_parent(a, root_id)}


def identify_leaf_assets(assets: Iterable[CreatedAsset]) -> list[str]:
    """Ids of assets that no other asset names as its parent."""
    assets = list(assets)
    parent_ids = {a.parent_id for a in assets if a.parent_id}
    return [a.asset_id for a in assets if a.asset_id not in parent_ids]


def determine_energy_flags(energy_types: Iterable[str]) -> EnergyFlags:
    """One True flag per recognized energy type present in the input."""
    present = set(energy_types)
    return EnergyFlags(**{
        flag: True for energy_type, flag in _FLAG_FIELDS.items() if energy_type in present
    })


def propagate_energy_types(energy_map: EnergyMap, parent_map: ParentMap) -> dict[str, EnergyFlags]:
    """Compute EnergyFlags for every ancestor of a tagged asset.

    A parent's flags reflect the types seen across all of its children,
    including types already propagated into those children from deeper
    levels. The walk continues upward with each distinct type, and a
    (asset, type) visited set stops it on cyclic parent maps.
    """
    children_of: dict[str, list[str]] = defaultdict(list)
    for child_id, parent_id in parent_map.items():
        children_of[parent_id].append(child_id)

    types_below: dict[str, set[str]] = defaultdict(set)
    for asset_id, energy_type in energy_map.items():
        types_below[asset_id].add(energy_type)

    result: dict[str, EnergyFlags] = {}
    visited: set[tuple[str, str]] = set()
    pending = list(energy_map.items())

    while pending:
        asset_id, energy_type = pending.pop()
        if (asset_id, energy_type) in visited:
            continue
        visited.add((asset_id, energy_type))

        parent_id = parent_map.get(asset_id)
        if not parent_id:
            continue

        observed = {energy_type}
        for child_id in children_of[parent_id]:
            observed |= types_below[child_id]
        types_below[parent_id] |= observed
        result[parent_id] = determine_energy_flags(types_below[parent_id])

        for seen_type in sorted(observed):
            pending.append((parent_id, seen_type))

    return result


def tag_leaves(
    assets: list[CreatedAsset],
    leaf_energy_map: dict[str, str],
    add_attribute_fn: Optional[Callable[[str, str, str], None]] = None,
) -> EnergyMap:
    """Write the energy type attribute on each tagged leaf.

    Only leaves whose attribute write succeeded end up in the returned map.
    A failed write is logged and the remaining leaves are still tagged.
    """
    add_attribute = add_attribute_fn or asset_ops.add_asset_attribute
    energy_map: EnergyMap = {}
    for leaf_id in identify_leaf_assets(assets):
        energy_type = leaf_energy_map.get(leaf_id)
        if not energy_type:
            continue
        try:
            add_attribute(leaf_id, ENERGY_TYPE_ATTRIBUTE, energy_type)
        except AssetServiceError as e:
            logger.error(f"Failed to tag asset {leaf_id} with {energy_type}: {e}")
            continue
        energy_map[leaf_id] = energy_type
    logger.info(f"Tagged {len(energy_map)} leaf assets with an energy type")
    return energy_map


def apply_energy_flags(
    energy_flags: dict[str, EnergyFlags],
    update_fn: Optional[Callable[[str, dict], None]] = None,
) -> list[str]:
    """PATCH each ancestor with its flags. Returns the ids whose update failed."""
    update = update_fn or asset_ops.update_asset
    failed: list[str] = []
    for asset_id, flags in energy_flags.items():
        body = flags.to_patch()
        if not body:
            continue
        try:
            update(asset_id, body)
        except AssetServiceError as e:
            logger.error(f"Failed to update asset {asset_id} with flags {body}: {e}")
            failed.append(asset_id)
    return failed


def run_energy_propagation(
    assets: list[CreatedAsset],
    leaf_energy_map: dict[str, str],
    apply: bool = True,
    root_parent_id: Optional[str] = None,
) -> PropagationOutcome:
    """Tag leaves, propagate their types upward and write the flags back."""
    energy_map = tag_leaves(assets, leaf_energy_map)
    parent_map = build_parent_map(assets, root_parent_id)
    flags = propagate_energy_types(energy_map, parent_map)
    failed = apply_energy_flags(flags) if apply else []
    logger.info(f"Propagated energy flags to {len(flags)} ancestors ({len(failed)} update failures)")
    return PropagationOutcome(energy_map=energy_map, energy_flags=flags, failed_updates=failed)
