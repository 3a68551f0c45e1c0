"""Pydantic models for the hierarchy, the remote asset service wire format,
and API request/response schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with the asset service (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ColumnMappingType(str, Enum):
    LEVEL = "level"
    CATEGORICAL = "categorical"
    IGNORE = "ignore"


class ErrorKey(str, Enum):
    PARENT_ASSET_CREATION_FAILED = "ParentAssetCreationFailed"
    MISSING_API_SUCCESS_RECORD = "MissingApiSuccessRecord"
    MAPPING_ERROR_ON_SUCCESS = "MappingErrorOnSuccess"
    NETWORK_OR_SERVER_ERROR = "NetworkOrServerError"
    CHUNK_PROCESSING_ERROR = "ChunkProcessingError"
    UNKNOWN_API_ERROR = "UnknownApiError"


class EnergyType(str, Enum):
    ELECTRICITY = "electricity"
    GAS = "gas"
    WATER = "water"
    THERMAL = "thermal"
    OTHER = "other"


class SyncStatus(str, Enum):
    COMPLETED = "completed"
    INVALID_MAPPING = "invalid_mapping"
    FAILED = "failed"


# --- Column mapping ---


class ColumnMapping(BaseModel):
    type: ColumnMappingType
    level: Optional[int] = None

    @field_validator("type", mode="before")
    @classmethod
    def _accept_legacy_energy_type(cls, value):
        # Older saved mappings tag the categorical column as "EnergyType"
        if value == "EnergyType":
            return ColumnMappingType.CATEGORICAL
        return value


class MappingConfig(WireModel):
    column_mappings: dict[str, ColumnMapping] = {}


class ValidatedMapping(BaseModel):
    level_columns: dict[int, str]
    categorical_column: str

    @property
    def max_level(self) -> int:
        return max(self.level_columns) if self.level_columns else -1


class MappingValidation(BaseModel):
    mapping: Optional[ValidatedMapping] = None
    errors: list[str] = []

    @property
    def is_valid(self) -> bool:
        return self.mapping is not None and not self.errors


# --- Input table and hierarchy ---


class TableData(BaseModel):
    headers: list[str]
    rows: list[list[Any]] = []


class AssetNode(BaseModel):
    name: str
    parent_path: Optional[str] = None
    full_path: str
    external_id: Optional[str] = None
    level: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _default_external_id(self):
        if self.external_id is None:
            self.external_id = self.full_path
        return self


class AssetLevel(BaseModel):
    level: int = Field(..., ge=0)
    nodes: list[AssetNode] = []


# --- Asset service wire models ---


class AssetToCreate(WireModel):
    name: str
    parent_id: str
    external_id: str


class ApiAssetResult(WireModel):
    """One entry of `results` in a bulk create response."""
    asset_id: Optional[str] = None
    name: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: Optional[int] = None
    has_children: Optional[bool] = None


class ApiErrorDebugInfo(WireModel):
    object_index: Optional[int] = None


class ApiError(WireModel):
    error_key: Optional[str] = None
    message: Optional[str] = None
    debug_info: Optional[ApiErrorDebugInfo] = None


class BulkCreateResponse(WireModel):
    results: list[ApiAssetResult] = []
    errors: list[ApiError] = []

    @field_validator("results", "errors", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return [] if value is None else value


class CreatedAsset(WireModel):
    model_config = ConfigDict(frozen=True)

    asset_id: str
    name: str
    parent_id: Optional[str] = None
    external_id: Optional[str] = None


class BulkAssetError(WireModel):
    error_key: str
    message: str
    asset_name: Optional[str] = None
    asset_external_id: Optional[str] = None
    object_index: Optional[int] = None


class SyncResult(BaseModel):
    successes: list[CreatedAsset] = []
    failures: list[BulkAssetError] = []
    id_of_path: dict[str, str] = {}


class EnergyFlags(WireModel):
    is_electricity: Optional[bool] = None
    is_gas: Optional[bool] = None
    is_water: Optional[bool] = None
    is_thermal: Optional[bool] = None

    def to_patch(self) -> dict[str, bool]:
        """Body for the asset PATCH call: only the flags that are set."""
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Variables ---


class VariableDataType(str, Enum):
    DOUBLE = "Double"
    BOOLEAN = "Boolean"
    STRING = "String"
    INTEGER = "Integer"


class VariableTemplate(BaseModel):
    """One variable to create on every asset of the listed energy types."""
    name_suffix: str
    topic_suffix: str
    data_type: VariableDataType = VariableDataType.DOUBLE
    description: Optional[str] = None
    units: Optional[str] = None
    apply_to_energy_types: list[EnergyType]


class Variable(WireModel):
    name: str
    topic: str
    data_type: VariableDataType
    description: Optional[str] = None
    units: Optional[str] = None
    asset_id: str


class VariableError(WireModel):
    error_key: str
    message: str
    variable_name: str
    asset_id: str


class VariableSyncResult(BaseModel):
    created: int = 0
    failures: list[VariableError] = []


class SyncReport(BaseModel):
    sync_run_id: str
    status: SyncStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    stats: dict = {}
    levels: list[AssetLevel] = []
    result: Optional[SyncResult] = None
    energy_map: dict[str, str] = {}
    energy_flags: dict[str, EnergyFlags] = {}
    variable_failures: list[VariableError] = []
    errors: list[str] = []


# --- API request/response models ---


class MappingValidationResponse(BaseModel):
    valid: bool
    errors: list[str] = []


class MappingTemplateCreate(BaseModel):
    template_yaml: str = Field(..., description="Mapping template YAML content")


class SyncPreviewRequest(BaseModel):
    table: TableData
    mapping: MappingConfig


class SyncPreviewResponse(BaseModel):
    node_count: int
    levels: list[AssetLevel] = []
    issues: list[str] = []


class SyncRequest(BaseModel):
    table: TableData
    mapping: MappingConfig
    chunk_size: Optional[int] = Field(None, ge=1)
    propagate_energy: bool = True
    adapter_id: Optional[str] = None


class EnergyPropagateRequest(BaseModel):
    assets: Optional[list[CreatedAsset]] = None
    energy_map: dict[str, str]
    apply: bool = True


class EnergyPropagateResponse(BaseModel):
    energy_flags: dict[str, EnergyFlags] = {}
    failed_updates: list[str] = []


class VariableBuildRequest(BaseModel):
    assets: Optional[list[CreatedAsset]] = None
    energy_map: dict[str, str]
    adapter_id: str = Field(..., min_length=1)
    create: bool = True
    chunk_size: Optional[int] = Field(None, ge=1)


class VariableBuildResponse(BaseModel):
    variables: list[Variable] = []
    created: int = 0
    failures: list[VariableError] = []
