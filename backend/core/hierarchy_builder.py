"""Hierarchy Builder — turns flat table rows into a deduplicated, leveled hierarchy.

Each row is read across its level columns (level 0, 1, 2, ...) until the
first blank cell. The names collected so far form the row's path, and every
prefix of that path is a node keyed by its full path ("Plant1@AreaA@Pump1").
Nodes shared by several rows are registered once.
"""

import logging
import re
from typing import Any, Iterator, Optional

from backend.core.config import settings
from backend.core.mapping_validator import column_key_to_index, unresolved_columns, validate_mapping
from backend.core.models import AssetLevel, AssetNode, MappingConfig, TableData, ValidatedMapping

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 50
FORBIDDEN_CHARS = re.compile(r"[^a-zA-Z0-9_\-\s.()]")


def _cell_text(row: list[Any], idx: int) -> Optional[str]:
    """Return a trimmed cell value, or None when blank or out of range."""
    if idx < 0 or idx >= len(row):
        return None
    value = row[idx]
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _level_indices(headers: list[str], mapping: ValidatedMapping, max_depth: int) -> list[int]:
    """Column index for each level 0..n-1, stopping at the first unmapped level."""
    indices: list[int] = []
    for level in range(max_depth):
        column_key = mapping.level_columns.get(level)
        if column_key is None:
            break
        indices.append(column_key_to_index(column_key, headers))
    return indices


def iter_row_paths(
    table: TableData,
    mapping: ValidatedMapping,
    max_depth: Optional[int] = None,
) -> Iterator[tuple[int, list[str]]]:
    """Yield (row_index, path segments) for each row, including empty paths."""
    depth = max_depth if max_depth is not None else settings.max_hierarchy_depth
    indices = _level_indices(table.headers, mapping, depth)
    for row_index, row in enumerate(table.rows):
        segments: list[str] = []
        for idx in indices:
            name = _cell_text(row, idx)
            if name is None:
                break
            segments.append(name)
        yield row_index, segments


def build_asset_levels(
    table: TableData,
    mapping: ValidatedMapping,
    max_depth: Optional[int] = None,
    separator: Optional[str] = None,
) -> list[AssetLevel]:
    """Build the ordered list of hierarchy levels (level 0 first).

    Every prefix of every row path is registered exactly once. Rows whose
    level 0 cell is blank contribute nothing; rows stop at their first blank
    level. Names are trimmed but not case-normalized.
    """
    sep = separator or settings.path_separator
    nodes_by_path: dict[str, AssetNode] = {}

    for _, segments in iter_row_paths(table, mapping, max_depth):
        for depth in range(len(segments)):
            full_path = sep.join(segments[: depth + 1])
            if full_path in nodes_by_path:
                continue
            nodes_by_path[full_path] = AssetNode(
                name=segments[depth],
                parent_path=sep.join(segments[:depth]) if depth > 0 else None,
                full_path=full_path,
                level=depth,
            )

    levels: dict[int, AssetLevel] = {}
    for node in nodes_by_path.values():
        levels.setdefault(node.level, AssetLevel(level=node.level)).nodes.append(node)

    result = [levels[lvl] for lvl in sorted(levels)]
    logger.info(
        f"Built {len(nodes_by_path)} nodes across {len(result)} levels "
        f"from {len(table.rows)} rows"
    )
    return result


def extract_leaf_categories(
    table: TableData,
    mapping: ValidatedMapping,
    max_depth: Optional[int] = None,
    separator: Optional[str] = None,
) -> dict[str, str]:
    """Map the deepest node of each row to that row's categorical value.

    The first non-empty value seen for a path wins.
    """
    sep = separator or settings.path_separator
    cat_idx = column_key_to_index(mapping.categorical_column, table.headers)
    categories: dict[str, str] = {}
    for row_index, segments in iter_row_paths(table, mapping, max_depth):
        if not segments:
            continue
        value = _cell_text(table.rows[row_index], cat_idx)
        if value is None:
            continue
        categories.setdefault(sep.join(segments), value)
    return categories


def dry_run(table: TableData, config: MappingConfig) -> list[str]:
    """Check a table against a mapping without creating anything.

    Returns human-readable issues; mapping errors are returned as-is and stop
    the check.
    """
    validation = validate_mapping(config)
    if not validation.is_valid:
        return [f"Error: {e}" for e in validation.errors]
    mapping = validation.mapping

    missing = unresolved_columns(mapping, table.headers)
    if missing:
        return [f"Error: {e}" for e in missing]

    issues: list[str] = []
    if not table.rows:
        issues.append("Error: No data rows to process.")
        return issues

    mapped_levels = sorted(mapping.level_columns)
    for expected, level in enumerate(mapped_levels):
        if level != expected:
            issues.append(
                f"Warning: Level {expected} is not mapped to any column; "
                f"levels {', '.join(str(l) for l in mapped_levels[expected:])} are unreachable."
            )
            break

    cat_idx = column_key_to_index(mapping.categorical_column, table.headers)
    for row_index, segments in iter_row_paths(table, mapping):
        row_num = row_index + 1
        if not segments:
            issues.append(
                f"Warning (Row {row_num}): Skipping row. Level 0 is blank, "
                f"cannot determine a name for the hierarchy."
            )
            continue
        for level, name in enumerate(segments):
            if len(name) > MAX_NAME_LENGTH:
                issues.append(
                    f"Warning (Row {row_num}): Name \"{name[:20]}...\" (Level {level}) "
                    f"exceeds {MAX_NAME_LENGTH} chars."
                )
            forbidden = FORBIDDEN_CHARS.findall(name)
            if forbidden:
                issues.append(
                    f"Warning (Row {row_num}): Name \"{name[:20]}\" (Level {level}) "
                    f"contains forbidden chars: {', '.join(forbidden)}."
                )
        category = _cell_text(table.rows[row_index], cat_idx)
        if category:
            if len(category) > MAX_NAME_LENGTH:
                issues.append(
                    f"Warning (Row {row_num}): Category \"{category[:20]}...\" "
                    f"exceeds {MAX_NAME_LENGTH} chars."
                )
            forbidden = FORBIDDEN_CHARS.findall(category)
            if forbidden:
                issues.append(
                    f"Warning (Row {row_num}): Category \"{category[:20]}\" "
                    f"contains forbidden chars: {', '.join(forbidden)}."
                )

    return issues
