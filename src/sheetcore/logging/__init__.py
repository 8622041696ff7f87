"""Structured event logging for sheetcore.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from sheetcore.logging.events import (
    EventLevel,
    EventType,
    SheetEvent,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    get_sink,
    make_cell_event,
    reset_log_dir,
    set_log_dir,
    truncate_context,
)
from sheetcore.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "SheetEvent",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "get_sink",
    "make_cell_event",
    "reset_log_dir",
    "set_log_dir",
    "truncate_context",
]
