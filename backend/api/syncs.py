"""Sync endpoints — preview a hierarchy and run a synchronization."""

import logging

from fastapi import APIRouter, HTTPException

from backend.core.models import (
    SyncPreviewRequest,
    SyncPreviewResponse,
    SyncReport,
    SyncRequest,
    SyncStatus,
)
from backend.core.sync_engine import build_preview, run_sync

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/syncs/preview", response_model=SyncPreviewResponse)
async def preview_sync(body: SyncPreviewRequest):
    """Build the hierarchy and list data issues without creating anything."""
    return build_preview(body.table, body.mapping)


@router.post("/syncs", response_model=SyncReport)
def create_sync(body: SyncRequest):
    """Create the table's hierarchy on the asset service and propagate energy flags.

    - **table**: parsed table (`headers` + `rows`)
    - **mapping**: column mapping (levels, one categorical column)
    - **chunk_size**: override the bulk create chunk size
    - **propagate_energy**: tag leaves and PATCH ancestor flags after creation
    - **adapter_id**: also create the energy variables of tagged leaves on this adapter
    """
    report = run_sync(
        body.table,
        body.mapping,
        chunk_size=body.chunk_size,
        propagate_energy=body.propagate_energy,
        adapter_id=body.adapter_id,
    )
    if report.status == SyncStatus.INVALID_MAPPING:
        raise HTTPException(status_code=422, detail={"validation_errors": report.errors})
    if report.status == SyncStatus.FAILED:
        logger.error(f"Sync {report.sync_run_id} failed: {report.errors}")
    return report
