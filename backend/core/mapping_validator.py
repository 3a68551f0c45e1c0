"""Column mapping validation.

A mapping tags every table column as `level` (with a level number),
`categorical` or `ignore`. Before the hierarchy is built the mapping must
assign each level number to at most one column and carry exactly one
categorical column. Validation is pure: it returns messages, never raises.
"""

import logging
import re

from backend.core.models import (
    ColumnMappingType,
    MappingConfig,
    MappingValidation,
    ValidatedMapping,
)

logger = logging.getLogger(__name__)

_POSITIONAL_KEY = re.compile(r"^_col_(\d+)$")


def column_key_to_index(column_key: str, headers: list[str]) -> int:
    """Resolve a mapping column key to a 0-based column index.

    Keys are header names, or `_col_<N>` for columns without a usable header.
    Returns -1 when the key matches nothing.
    """
    if column_key in headers:
        return headers.index(column_key)
    match = _POSITIONAL_KEY.match(column_key)
    if match:
        return int(match.group(1))
    return -1


def validate_mapping(config: MappingConfig) -> MappingValidation:
    """Validate a column mapping. Returns the validated mapping or a list of errors."""
    errors: list[str] = []
    columns_by_level: dict[int, list[str]] = {}
    categorical_columns: list[str] = []

    for column_key, mapping in config.column_mappings.items():
        if mapping.type == ColumnMappingType.LEVEL:
            if mapping.level is None:
                errors.append(
                    f"Column '{column_key}' is type 'level' but level number is missing."
                )
                continue
            if mapping.level < 0:
                errors.append(
                    f"Column '{column_key}' has invalid level {mapping.level}; "
                    f"levels start at 0."
                )
                continue
            columns_by_level.setdefault(mapping.level, []).append(column_key)
        elif mapping.type == ColumnMappingType.CATEGORICAL:
            categorical_columns.append(column_key)

    for level in sorted(columns_by_level):
        columns = columns_by_level[level]
        if len(columns) > 1:
            errors.append(
                f"Level '{level}' can only be assigned to one column. "
                f"Found on: {', '.join(columns)}"
            )

    if not categorical_columns:
        errors.append("One column must be mapped as 'categorical'.")
    elif len(categorical_columns) > 1:
        errors.append(
            f"'categorical' can only be assigned to one column. "
            f"Found on: {', '.join(categorical_columns)}"
        )

    if errors:
        logger.info(f"Mapping rejected with {len(errors)} error(s)")
        return MappingValidation(errors=errors)

    return MappingValidation(
        mapping=ValidatedMapping(
            level_columns={lvl: cols[0] for lvl, cols in sorted(columns_by_level.items())},
            categorical_column=categorical_columns[0],
        )
    )


def unresolved_columns(mapping: ValidatedMapping, headers: list[str]) -> list[str]:
    """Errors for mapped level or categorical keys that match no column of the table."""
    keyed = [(f"level {lvl}", key) for lvl, key in sorted(mapping.level_columns.items())]
    keyed.append(("categorical", mapping.categorical_column))
    return [
        f"Column '{key}' ({role}) is not in the table headers."
        for role, key in keyed
        if column_key_to_index(key, headers) < 0
    ]
