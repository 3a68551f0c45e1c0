"""Sync Engine — orchestrates a full hierarchy synchronization run.

Takes a parsed table + column mapping, validates the mapping, builds the
leveled hierarchy, creates it on the asset service level by level, caches
the created assets, then tags leaves with their energy type and propagates
energy flags to every ancestor.

Synchronous-first design: runs inline in the request handler.
"""

import logging
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from backend.core.asset_cache import cache_created_assets
from backend.core.bulk_sync import sync_levels
from backend.core.energy_propagation import normalize_energy_type, run_energy_propagation
from backend.core.hierarchy_builder import build_asset_levels, dry_run, extract_leaf_categories
from backend.core.id_gen import generate_id
from backend.core.mapping_validator import unresolved_columns, validate_mapping
from backend.core.models import (
    MappingConfig,
    SyncPreviewResponse,
    SyncReport,
    SyncResult,
    SyncStatus,
    TableData,
    ValidatedMapping,
)
from backend.core.variable_builder import build_variables, create_variables

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    """Tracks sync run statistics."""
    nodes_total: int = 0
    levels: int = 0
    assets_created: int = 0
    failures: int = 0
    leaves_tagged: int = 0
    flags_computed: int = 0
    flag_update_failures: int = 0
    variables_created: int = 0
    variable_failures: int = 0


def derive_leaf_energy_map(
    table: TableData,
    mapping: ValidatedMapping,
    id_of_path: dict[str, str],
) -> dict[str, str]:
    """Asset id -> normalized energy type, for every created node a row ends on."""
    leaf_energy_map: dict[str, str] = {}
    for full_path, raw_value in extract_leaf_categories(table, mapping).items():
        asset_id = id_of_path.get(full_path)
        energy_type = normalize_energy_type(raw_value)
        if asset_id and energy_type:
            leaf_energy_map[asset_id] = energy_type
    return leaf_energy_map


def build_preview(table: TableData, config: MappingConfig) -> SyncPreviewResponse:
    """Validate and build the hierarchy without touching the asset service."""
    validation = validate_mapping(config)
    if not validation.is_valid:
        return SyncPreviewResponse(node_count=0, issues=[f"Error: {e}" for e in validation.errors])
    missing = unresolved_columns(validation.mapping, table.headers)
    if missing:
        return SyncPreviewResponse(node_count=0, issues=[f"Error: {e}" for e in missing])
    levels = build_asset_levels(table, validation.mapping)
    return SyncPreviewResponse(
        node_count=sum(len(lv.nodes) for lv in levels),
        levels=levels,
        issues=dry_run(table, config),
    )


def _stats_dict(stats: SyncStats, result: Optional[SyncResult]) -> dict:
    stats_dict = asdict(stats)
    failures = result.failures if result else []
    stats_dict["failures_by_key"] = dict(Counter(f.error_key for f in failures))
    return stats_dict


def run_sync(
    table: TableData,
    config: MappingConfig,
    chunk_size: Optional[int] = None,
    propagate_energy: bool = True,
    adapter_id: Optional[str] = None,
) -> SyncReport:
    """Run a full synchronization of a table against the asset service.

    Steps:
    1. Validate the column mapping against the table (no network activity on failure)
    2. Build the leveled hierarchy
    3. Create levels in order, chunked, reconciling server ids
    4. Cache created assets by externalId
    5. Tag leaves with their energy type
    6. Propagate energy flags upward and PATCH ancestors
    7. With an adapter, create the energy variables of every tagged leaf

    A failure after step 3 still returns the creation result: those assets
    exist on the service whatever happens next.
    """
    started_at = datetime.now(timezone.utc)
    sync_run_id = generate_id("sync_")
    stats = SyncStats()

    validation = validate_mapping(config)
    errors = validation.errors
    if validation.is_valid:
        errors = unresolved_columns(validation.mapping, table.headers)
    if errors:
        logger.warning(f"Sync {sync_run_id} rejected: invalid mapping")
        return SyncReport(
            sync_run_id=sync_run_id,
            status=SyncStatus.INVALID_MAPPING,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            errors=errors,
        )
    mapping = validation.mapping

    try:
        levels = build_asset_levels(table, mapping)
        stats.levels = len(levels)
        stats.nodes_total = sum(len(lv.nodes) for lv in levels)

        result = sync_levels(levels, chunk_size=chunk_size)
    except Exception as e:
        logger.error(f"Sync {sync_run_id} failed: {e}", exc_info=True)
        return SyncReport(
            sync_run_id=sync_run_id,
            status=SyncStatus.FAILED,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            stats=_stats_dict(stats, None),
            errors=[str(e)],
        )

    stats.assets_created = len(result.successes)
    stats.failures = len(result.failures)
    logger.info(
        f"Sync {sync_run_id}: {stats.assets_created}/{stats.nodes_total} assets created, "
        f"{stats.failures} failures"
    )

    status = SyncStatus.COMPLETED
    errors = []
    energy_map: dict[str, str] = {}
    energy_flags = {}
    variable_failures = []
    try:
        cache_created_assets(result.successes)

        if propagate_energy and result.successes:
            leaf_energy_map = derive_leaf_energy_map(table, mapping, result.id_of_path)
            outcome = run_energy_propagation(result.successes, leaf_energy_map)
            energy_map = outcome.energy_map
            energy_flags = outcome.energy_flags
            stats.leaves_tagged = len(outcome.energy_map)
            stats.flags_computed = len(outcome.energy_flags)
            stats.flag_update_failures = len(outcome.failed_updates)

        if adapter_id and energy_map:
            variables = build_variables(result.successes, energy_map, adapter_id)
            variable_result = create_variables(variables)
            variable_failures = variable_result.failures
            stats.variables_created = variable_result.created
            stats.variable_failures = len(variable_result.failures)
    except Exception as e:
        logger.error(f"Sync {sync_run_id} failed after creating assets: {e}", exc_info=True)
        status = SyncStatus.FAILED
        errors = [str(e)]

    return SyncReport(
        sync_run_id=sync_run_id,
        status=status,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc),
        stats=_stats_dict(stats, result),
        levels=levels,
        result=result,
        energy_map=energy_map,
        energy_flags=energy_flags,
        variable_failures=variable_failures,
        errors=errors,
    )
