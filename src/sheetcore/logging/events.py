"""Sheet event schema and the process-wide emit helpers.

Events are pydantic models stamped with a UTC ``...Z`` timestamp.  They
go to whichever ``EventSink`` ``set_log_dir`` attached; with none
attached they are dropped.  Nothing in the ``emit`` family raises: a
failing sink becomes a throttled note on stderr.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from sheetcore.logging.sink import EventSink


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Edits
    cell_committed = "cell_committed"
    cell_error = "cell_error"
    cascade_completed = "cascade_completed"

    # Whole-sheet operations
    sheet_cleared = "sheet_cleared"
    sheet_saved = "sheet_saved"
    sheet_loaded = "sheet_loaded"
    sheet_load_failed = "sheet_load_failed"
    load_deferred = "load_deferred"


# Values for SheetEvent.error_code
SELF_REFERENCE = "self_reference"
CIRCULAR_REFERENCE = "circular_reference"
EVALUATION_ERROR = "evaluation_error"
LOAD_CIRCULAR_DEPENDENCY = "load_circular_dependency"
LOAD_FORMAT_ERROR = "load_format_error"

_MAX_VALUE_LEN = 256
_TRUNCATED_SUFFIX = "...[truncated]"


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy *context*, cutting strings (at any nesting depth) to 256 chars.

    Cell text is user input of any length; a cut value ends in
    ``...[truncated]``.
    """
    return {key: _truncate(value) for key, value in context.items()}


def _truncate(value: Any) -> Any:
    if isinstance(value, str):
        return value if len(value) <= _MAX_VALUE_LEN else value[:_MAX_VALUE_LEN] + _TRUNCATED_SUFFIX
    if isinstance(value, dict):
        return truncate_context(value)
    if isinstance(value, list):
        return [_truncate(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class SheetEvent(BaseModel):
    """One line of the event log."""

    schema_version: int = 1
    ts: str = Field(default_factory=_timestamp)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_cell_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    cell: str,
    text: str | None = None,
    value: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> SheetEvent:
    """Build an event whose context always names the cell involved."""
    context: dict[str, Any] = {"cell": cell, **(extra or {})}
    if text is not None:
        context["text"] = text
    if value is not None:
        context["value"] = value
    return SheetEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=context,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Attached sink
# ---------------------------------------------------------------------------

_sink: EventSink | None = None


def set_log_dir(project_dir: str | Path) -> None:
    """Send events to ``<project_dir>/logs/events.ndjson`` from now on.

    The sink's ``fsync`` and tail size come from ``logging_fsync`` and
    ``logging_tail_bytes`` in the project's ``sheetcore.yaml``.
    """
    global _sink
    from sheetcore.logging.sink import EventSink
    from sheetcore.project import load_project_config

    project_dir = Path(project_dir)
    config = load_project_config(project_dir)
    tail_bytes = config.get("logging_tail_bytes")
    _sink = EventSink(
        project_dir,
        fsync=bool(config.get("logging_fsync", False)),
        tail_bytes=None if tail_bytes is None else int(tail_bytes),
    )


def reset_log_dir() -> None:
    global _sink
    _sink = None


def get_sink() -> EventSink | None:
    return _sink


# ---------------------------------------------------------------------------
# Emitting
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Write *msg* to stderr at most once a minute."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        sys.stderr.write(f"[sheetcore] {msg}\n")
    except Exception:
        pass


def emit(event: SheetEvent) -> None:
    """Append *event* to the attached sink, if any.  Never raises."""
    sink = get_sink()
    if sink is None:
        return
    try:
        sink.write(event.model_copy(update={"context": truncate_context(event.context)}))
    except Exception:
        _stderr_warning(f"event log write failed: {traceback.format_exc()}")


def _emit_at(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None,
) -> None:
    try:
        event = SheetEvent(
            level=level,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    except Exception:
        _stderr_warning(f"invalid event dropped: {traceback.format_exc()}")
        return
    emit(event)


def emit_info(event_type: EventType, message: str, context: dict[str, Any] | None = None) -> None:
    _emit_at(EventLevel.info, event_type, message, context, None)


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    _emit_at(EventLevel.warning, event_type, message, context, error_code)


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    _emit_at(EventLevel.error, event_type, message, context, error_code)
