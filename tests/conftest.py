"""Shared test fixtures for the asset sync test suite."""

from typing import Optional

import pytest

from backend.core.asset_ops import AssetServiceError
from backend.core.models import (
    ApiAssetResult,
    ApiError,
    ApiErrorDebugInfo,
    AssetToCreate,
    BulkCreateResponse,
    ColumnMapping,
    ColumnMappingType,
    CreatedAsset,
    MappingConfig,
    TableData,
    ValidatedMapping,
)


PLANT_HEADERS = ["Plant", "Area", "Equipment", "Energy"]

PLANT_ROWS = [
    ["Plant1", "AreaA", "Pump1", "Elec"],
    ["Plant1", "AreaA", "Pump2", ""],
    ["Plant1", "AreaB", "Fan1", "Gaz"],
]


def make_table(rows: Optional[list[list]] = None, headers: Optional[list[str]] = None) -> TableData:
    """Helper to build a parsed table; defaults to the three-row plant sample."""
    return TableData(
        headers=headers if headers is not None else list(PLANT_HEADERS),
        rows=rows if rows is not None else [list(r) for r in PLANT_ROWS],
    )


def make_config(levels: Optional[list[str]] = None, categorical: Optional[str] = "Energy") -> MappingConfig:
    """Helper to build a mapping config: one level per listed column, in order."""
    levels = levels if levels is not None else ["Plant", "Area", "Equipment"]
    column_mappings = {
        column: ColumnMapping(type=ColumnMappingType.LEVEL, level=i)
        for i, column in enumerate(levels)
    }
    if categorical:
        column_mappings[categorical] = ColumnMapping(type=ColumnMappingType.CATEGORICAL)
    return MappingConfig(column_mappings=column_mappings)


def make_mapping(levels: Optional[list[str]] = None, categorical: str = "Energy") -> ValidatedMapping:
    """Helper to build an already validated mapping."""
    levels = levels if levels is not None else ["Plant", "Area", "Equipment"]
    return ValidatedMapping(
        level_columns={i: column for i, column in enumerate(levels)},
        categorical_column=categorical,
    )


def make_asset(asset_id: str, name: str, parent_id: Optional[str] = "0", external_id: Optional[str] = None) -> CreatedAsset:
    return CreatedAsset(asset_id=asset_id, name=name, parent_id=parent_id, external_id=external_id or name)


class FakeBulkApi:
    """Stand-in for asset_ops.bulk_create_assets.

    Assigns sequential ids ("id-1", "id-2", ...) and records every chunk it
    receives. Names in `fail_names` come back as per-index API errors;
    a chunk containing a name in `raise_for_names` fails as a whole.
    """

    def __init__(self, fail_names=(), raise_for_names=()):
        self.fail_names = set(fail_names)
        self.raise_for_names = set(raise_for_names)
        self.calls: list[list[AssetToCreate]] = []
        self._next_id = 0

    def __call__(self, chunk: list[AssetToCreate]) -> BulkCreateResponse:
        self.calls.append(list(chunk))
        if any(a.name in self.raise_for_names for a in chunk):
            raise AssetServiceError("connection reset by peer")

        results: list[ApiAssetResult] = []
        errors: list[ApiError] = []
        for idx, asset in enumerate(chunk):
            if asset.name in self.fail_names:
                errors.append(ApiError(
                    error_key="AssetNameInvalid",
                    message=f"Name '{asset.name}' rejected",
                    debug_info=ApiErrorDebugInfo(object_index=idx),
                ))
                continue
            self._next_id += 1
            results.append(ApiAssetResult(
                asset_id=f"id-{self._next_id}",
                name=asset.name,
                parent_id=asset.parent_id,
            ))
        return BulkCreateResponse(results=results, errors=errors)

    @property
    def submitted_external_ids(self) -> list[str]:
        return [a.external_id for chunk in self.calls for a in chunk]


@pytest.fixture
def fake_api() -> FakeBulkApi:
    return FakeBulkApi()


@pytest.fixture
def plant_assets() -> list[CreatedAsset]:
    """Plant1 > AreaA > (Pump1, Pump2); Plant1 > AreaB > Fan1."""
    return [
        make_asset("p1", "Plant1", "0", "Plant1"),
        make_asset("a", "AreaA", "p1", "Plant1@AreaA"),
        make_asset("b", "AreaB", "p1", "Plant1@AreaB"),
        make_asset("pu1", "Pump1", "a", "Plant1@AreaA@Pump1"),
        make_asset("pu2", "Pump2", "a", "Plant1@AreaA@Pump2"),
        make_asset("f1", "Fan1", "b", "Plant1@AreaB@Fan1"),
    ]
