"""NDJSON file sink for sheet events.

One event per line in ``<project>/logs/events.ndjson``, serialised with
``sort_keys=True``.  Appends hold an exclusive ``fcntl.flock``; reads
hold a shared one and only look at the last ``tail_bytes`` of the file.
Without ``fcntl`` (Windows) the locks are no-ops.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from sheetcore.logging.events import SheetEvent

try:
    import fcntl
except ImportError:  # pragma: no cover - Windows
    fcntl = None  # type: ignore[assignment]

_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024

_MAX_READ_LIMIT = 2000


@contextmanager
def _locked(f: IO[bytes], *, exclusive: bool) -> Iterator[None]:
    if fcntl is None:
        yield
        return
    fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield
    finally:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


class EventSink:
    """Append-only event log for one project."""

    def __init__(self, project_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = Path(project_dir) / "logs"
        self._fsync = fsync
        self._tail_bytes = tail_bytes if tail_bytes is not None else _DEFAULT_TAIL_BYTES
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.logs_dir / "events.ndjson"

    def write(self, event: SheetEvent) -> None:
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"
        # Unbuffered append: the whole line goes out in one write() call.
        with open(self.path, "ab", buffering=0) as f, _locked(f, exclusive=True):
            f.write(line.encode("utf-8"))
            if self._fsync:
                os.fsync(f.fileno())

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        cell: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Read events, most-recent-first, with optional filters.

        Only the tail of the file is parsed; lines that are not valid
        JSON are skipped.  *limit* is capped at 2000.
        """
        if cell:
            cell = cell.upper()
        matches = [
            e
            for e in self._tail_events()
            if (not level or e.get("level") == level)
            and (not event_type or e.get("event_type") == event_type)
            and (not cell or e.get("context", {}).get("cell") == cell)
        ]
        matches.reverse()
        return matches[: min(limit, _MAX_READ_LIMIT)]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _tail_events(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, "rb") as f, _locked(f, exclusive=False):
            size = f.seek(0, os.SEEK_END)
            start = max(0, size - self._tail_bytes)
            f.seek(start)
            data = f.read()
        if start:
            # The first line is cut mid-event.
            data = data.partition(b"\n")[2]

        events: list[dict[str, Any]] = []
        for line in data.decode("utf-8", errors="replace").splitlines():
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events
