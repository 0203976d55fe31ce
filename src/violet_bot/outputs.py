"""
Supplementary build outputs reported by the running job.

Each output kind is written once per entry, and only to entries whose
command declares that output. Re-sending the same value is a no-op; a
different value is an OutputConflictError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .errors import ArgumentError, EntryNotFoundError, OutputConflictError, UnsupportedCommandError
from .logs import log_event
from .models import BUILD_OUTPUT_SCHEMAS
from .registry import AnyCmd, lookup
from .store import EntryStore
from .validation import serialize, validate_args

logger = logging.getLogger(__name__)


def record_build_output(
    store: EntryStore,
    uuid: str,
    kind: str,
    raw: Any,
    lookup_cmd: Callable[[str], AnyCmd | UnsupportedCommandError] = lookup,
) -> bool:
    """Return True if written now, False if the same value was already there."""
    schema = BUILD_OUTPUT_SCHEMAS.get(kind)
    if schema is None:
        raise ArgumentError(f"unknown build output kind: {kind}")
    value = serialize(validate_args(schema, raw))

    record = store.get(uuid)
    cmd = lookup_cmd(record.name)
    if isinstance(cmd, UnsupportedCommandError) or kind not in cmd.entry_schema.model_fields:
        raise ArgumentError(f"/{record.name} does not take {kind}: {uuid}")

    if store.append_output(uuid, kind, value):
        log_event(logger, "build_output_recorded", uuid=uuid, kind=kind, cmd=record.name)
        return True

    # condition failed: record gone since the read, or output already present
    existing = store.get(uuid).entry.get(kind)
    if existing is None:
        raise EntryNotFoundError(uuid)
    if existing != value:
        raise OutputConflictError(f"{kind} already recorded for {uuid}")
    log_event(logger, "build_output_duplicate", uuid=uuid, kind=kind)
    return False
