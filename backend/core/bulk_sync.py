"""Level-ordered bulk synchronization of a hierarchy against the asset service.

The asset service only accepts a child once its parent exists, and assigns
its own ids. Levels are therefore created strictly in order: every chunk of
level N is reconciled into `id_of_path` (full path -> server asset id)
before any node of level N+1 is submitted. A node whose parent path is not
in `id_of_path` is skipped and reported, which cascades the skip to its
whole subtree without ever submitting it.

Failures are isolated per node and per chunk. Nothing is rolled back.

Note for operators: re-running after a partial failure re-submits every
node. That is only safe when the asset service deduplicates on externalId;
otherwise already-created assets will be duplicated.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence

from pydantic import ValidationError

from backend.core import asset_ops
from backend.core.asset_ops import AssetServiceError
from backend.core.config import settings
from backend.core.models import (
    AssetLevel,
    AssetToCreate,
    BulkAssetError,
    BulkCreateResponse,
    CreatedAsset,
    ErrorKey,
    SyncResult,
)

logger = logging.getLogger(__name__)

CreateFn = Callable[[list[AssetToCreate]], BulkCreateResponse]

UNKNOWN_FROM_API = "Unknown from API error"


@dataclass
class ChunkOutcome:
    """Reconciled result of one bulk create call."""
    successes: list[CreatedAsset] = field(default_factory=list)
    failures: list[BulkAssetError] = field(default_factory=list)
    bindings: dict[str, str] = field(default_factory=dict)


def chunked(items: Sequence, size: int) -> Iterator[list]:
    """Split items into consecutive lists of at most `size`, preserving order."""
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def resolve_level_payload(
    level: AssetLevel,
    id_of_path: dict[str, str],
    root_parent_id: str,
) -> tuple[list[AssetToCreate], list[BulkAssetError]]:
    """Build create requests for a level, skipping nodes whose parent has no server id."""
    payload: list[AssetToCreate] = []
    failures: list[BulkAssetError] = []

    for node in level.nodes:
        if node.parent_path is None:
            parent_id = root_parent_id
        else:
            parent_id = id_of_path.get(node.parent_path)
            if not parent_id:
                logger.warning(
                    f"Skipping asset '{node.name}' (path: {node.full_path}): parent "
                    f"'{node.parent_path}' was not created"
                )
                failures.append(BulkAssetError(
                    error_key=ErrorKey.PARENT_ASSET_CREATION_FAILED.value,
                    message=(
                        f"Parent asset (path: {node.parent_path}) for \"{node.name}\" "
                        f"was not created successfully or its ID was not found."
                    ),
                    asset_name=node.name,
                    asset_external_id=node.full_path,
                ))
                continue

        payload.append(AssetToCreate(
            name=node.name,
            parent_id=parent_id,
            external_id=node.external_id or node.full_path,
        ))

    return payload, failures


def _unmatched_inputs(
    chunk: list[AssetToCreate],
    errored: set[int],
    error_key: str,
    reason: str,
) -> list[BulkAssetError]:
    return [
        BulkAssetError(
            error_key=error_key,
            message=f"Asset \"{request.name}\" was not bound to a created asset: {reason}",
            asset_name=request.name,
            asset_external_id=request.external_id,
            object_index=idx,
        )
        for idx, request in enumerate(chunk)
        if idx not in errored
    ]


def reconcile_chunk(chunk: list[AssetToCreate], response: BulkCreateResponse) -> ChunkOutcome:
    """Correlate a bulk create response with the chunk that was submitted.

    `response.errors` name the failing inputs by index within the chunk.
    `response.results` hold the successes in the order of the remaining
    inputs, so each non-errored input takes the next result. That pairing
    only holds when every error carries an in-range index and there is
    exactly one result per non-errored input. Otherwise nothing from the
    chunk is bound and every non-errored input is reported as a contract
    failure.
    """
    outcome = ChunkOutcome()
    errored: set[int] = set()
    unindexed = 0

    for err in response.errors:
        idx = err.debug_info.object_index if err.debug_info else None
        request = None
        if idx is not None and 0 <= idx < len(chunk):
            errored.add(idx)
            request = chunk[idx]
        else:
            unindexed += 1
            logger.warning(f"API error without a usable objectIndex: {err.model_dump(by_alias=True)}")
        outcome.failures.append(BulkAssetError(
            error_key=err.error_key or ErrorKey.UNKNOWN_API_ERROR.value,
            message=err.message or "An unknown API error occurred.",
            asset_name=request.name if request else UNKNOWN_FROM_API,
            asset_external_id=request.external_id if request else UNKNOWN_FROM_API,
            object_index=idx,
        ))

    expected = len(chunk) - len(errored)
    received = len(response.results)

    if unindexed:
        logger.error(
            f"{unindexed} API error(s) cannot be matched to an input; "
            f"no asset of this chunk is bound"
        )
        outcome.failures.extend(_unmatched_inputs(
            chunk, errored, ErrorKey.MAPPING_ERROR_ON_SUCCESS.value,
            f"{unindexed} API error(s) had no usable objectIndex",
        ))
        return outcome

    if received < expected:
        logger.error(
            f"API returned {received} success record(s) for {expected} non-errored inputs; "
            f"no asset of this chunk is bound"
        )
        outcome.failures.extend(_unmatched_inputs(
            chunk, errored, ErrorKey.MISSING_API_SUCCESS_RECORD.value,
            f"not in API errors, but only {received} success record(s) came back "
            f"for {expected} inputs",
        ))
        return outcome

    if received > expected:
        surplus = received - expected
        logger.error(
            f"API returned {surplus} more success record(s) than non-errored inputs; "
            f"no asset of this chunk is bound"
        )
        reason = f"API returned {surplus} surplus success record(s)"
        failures = _unmatched_inputs(chunk, errored, ErrorKey.MAPPING_ERROR_ON_SUCCESS.value, reason)
        if not failures:
            failures = [BulkAssetError(
                error_key=ErrorKey.MAPPING_ERROR_ON_SUCCESS.value,
                message=f"{reason} for a chunk where every input failed.",
                asset_name=UNKNOWN_FROM_API,
                asset_external_id=UNKNOWN_FROM_API,
            )]
        outcome.failures.extend(failures)
        return outcome

    pending = iter(response.results)
    for idx, request in enumerate(chunk):
        if idx in errored:
            continue
        result = next(pending)
        if request.external_id and result.asset_id:
            outcome.bindings[request.external_id] = result.asset_id
            outcome.successes.append(CreatedAsset(
                asset_id=result.asset_id,
                name=result.name or request.name,
                parent_id=result.parent_id or request.parent_id,
                external_id=request.external_id,
            ))
        else:
            outcome.failures.append(BulkAssetError(
                error_key=ErrorKey.MAPPING_ERROR_ON_SUCCESS.value,
                message=(
                    f"Asset \"{result.name or request.name}\" reported as success by API "
                    f"but assetId or input externalId is missing for mapping."
                ),
                asset_name=result.name or request.name,
                asset_external_id=request.external_id,
                object_index=idx,
            ))

    return outcome


def _fail_chunk(chunk: list[AssetToCreate], error_key: str, reason: str) -> list[BulkAssetError]:
    return [
        BulkAssetError(
            error_key=error_key,
            message=f"Failed to process chunk for asset \"{request.name}\": {reason}",
            asset_name=request.name,
            asset_external_id=request.external_id,
            object_index=idx,
        )
        for idx, request in enumerate(chunk)
    ]


def _submit_chunk(chunk: list[AssetToCreate], create_fn: CreateFn, label: str) -> ChunkOutcome:
    """Submit one chunk; any failure of the call becomes one failure per node."""
    try:
        response = create_fn(chunk)
    except AssetServiceError as e:
        logger.error(f"{label}: bulk create failed: {e}")
        return ChunkOutcome(failures=_fail_chunk(
            chunk, e.error_key or ErrorKey.NETWORK_OR_SERVER_ERROR.value, e.message,
        ))
    except ValidationError as e:
        logger.error(f"{label}: malformed bulk create response: {e}")
        return ChunkOutcome(failures=_fail_chunk(
            chunk, ErrorKey.CHUNK_PROCESSING_ERROR.value, "malformed API response",
        ))
    except Exception as e:
        logger.error(f"{label}: unexpected error during bulk create: {e}", exc_info=True)
        return ChunkOutcome(failures=_fail_chunk(
            chunk, ErrorKey.CHUNK_PROCESSING_ERROR.value, str(e),
        ))
    return reconcile_chunk(chunk, response)


def sync_levels(
    levels: list[AssetLevel],
    chunk_size: Optional[int] = None,
    root_parent_id: Optional[str] = None,
    create_fn: Optional[CreateFn] = None,
) -> SyncResult:
    """Create every node of every level on the asset service, parents first.

    Returns all successes and failures accumulated across levels, plus the
    full path -> server id map built along the way.
    """
    size = chunk_size or settings.chunk_size
    root_id = root_parent_id if root_parent_id is not None else settings.root_parent_id
    create = create_fn or asset_ops.bulk_create_assets

    id_of_path: dict[str, str] = {}
    successes: list[CreatedAsset] = []
    failures: list[BulkAssetError] = []

    for level in sorted(levels, key=lambda lv: lv.level):
        payload, skipped = resolve_level_payload(level, id_of_path, root_id)
        failures.extend(skipped)
        if not payload:
            logger.info(f"Level {level.level}: nothing to create ({len(skipped)} skipped)")
            continue

        logger.info(f"Level {level.level}: creating {len(payload)} assets ({len(skipped)} skipped)")
        for chunk_no, chunk in enumerate(chunked(payload, size), start=1):
            label = f"Level {level.level}, chunk {chunk_no}"
            outcome = _submit_chunk(chunk, create, label)
            id_of_path.update(outcome.bindings)
            successes.extend(outcome.successes)
            failures.extend(outcome.failures)
            logger.info(
                f"{label}: {len(outcome.successes)} created, {len(outcome.failures)} failed"
            )

        logger.info(
            f"Finished level {level.level}. Total successes so far: {len(successes)}, "
            f"total failures so far: {len(failures)}"
        )

    return SyncResult(successes=successes, failures=failures, id_of_path=id_of_path)
