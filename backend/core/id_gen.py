"""Time-sortable identifiers for sync runs."""

from uuid_extensions import uuid7


def generate_id(prefix: str = "") -> str:
    """Generate a UUID v7 hex string with an optional prefix, e.g. "sync_0192...".

    UUID v7 sorts by creation time, so run ids list in the order they started.
    """
    uid = uuid7().hex
    return f"{prefix}{uid}" if prefix else uid
