"""Save and load a spreadsheet's modified cells as YAML.

Only cells with text or a non-default background color are written.
Loading replays each record through the normal commit path; formulas
that reference other formulas are deferred and retried in passes so a
document can list cells in any order.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from sheetcore.addressing import col_letter_to_index, index_to_col_letter, make_addr, normalize_addr
from sheetcore.cell import DEFAULT_BG_COLOR, FORMULA_MARKER
from sheetcore.formulas.errors import (
    CellEvaluationError,
    CircularDependencyError,
    FormulaError,
    InvalidCellReferenceError,
    SheetFormatError,
)
from sheetcore.formulas.lexer import extract_cell_references
from sheetcore.logging.events import (
    LOAD_CIRCULAR_DEPENDENCY,
    LOAD_FORMAT_ERROR,
    EventType,
    emit_error,
    emit_info,
    emit_warning,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


# ---------------------------------------------------------------------------
# Document models
# ---------------------------------------------------------------------------


class CellRecord(BaseModel):
    """One persisted cell.  ``row`` is zero-based, ``column`` is letters."""

    row: int = Field(ge=0)
    column: str
    text: str = ""
    value: str = ""
    bg_color: int = Field(default=DEFAULT_BG_COLOR, ge=0)

    @property
    def name(self) -> str:
        return make_addr(self.row, col_letter_to_index(self.column))


class SheetDocument(BaseModel):
    version: int = FORMAT_VERSION
    rows: int = Field(gt=0)
    columns: int = Field(gt=0)
    cells: list[CellRecord] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------


def _atomic_yaml_write(path: Path, data: Any) -> None:
    """Write YAML to a file atomically via write-to-tmp then os.replace."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(yaml.safe_dump(data, sort_keys=False, default_flow_style=False))
    os.replace(str(tmp_path), str(path))


def to_document(spreadsheet: Any) -> SheetDocument:
    """Snapshot the modified cells of *spreadsheet*."""
    records = [
        CellRecord(
            row=cell.row,
            column=index_to_col_letter(cell.column),
            text=cell.text,
            value=cell.value,
            bg_color=cell.bg_color,
        )
        for cell in spreadsheet.modified_cells()
    ]
    return SheetDocument(rows=spreadsheet.row_count, columns=spreadsheet.column_count, cells=records)


def save_sheet(spreadsheet: Any, path: Path) -> Path:
    """Write the modified cells of *spreadsheet* to *path*.

    Args:
        spreadsheet: The sheet to save.
        path: Destination file.  Parent directories are created.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    document = to_document(spreadsheet)
    _atomic_yaml_write(path, document.model_dump(mode="json"))
    emit_info(
        EventType.sheet_saved,
        f"Saved {len(document.cells)} cell(s) to {path.name}",
        {"path": str(path), "cells": len(document.cells)},
    )
    return path


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def read_document(path: Path) -> SheetDocument:
    """Parse and validate a sheet document.

    Raises:
        FileNotFoundError: If *path* does not exist.
        SheetFormatError: If the file is not a valid sheet document.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sheet file not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise SheetFormatError(f"{path.name} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise SheetFormatError(f"{path.name} must contain a mapping")
    try:
        document = SheetDocument.model_validate(raw)
    except ValidationError as exc:
        raise SheetFormatError(f"{path.name} is not a valid sheet document: {exc}") from exc
    if document.version != FORMAT_VERSION:
        raise SheetFormatError(f"Unsupported sheet format version {document.version}")
    return document


def load_sheet(spreadsheet: Any, path: Path) -> list[str]:
    """Replace the contents of *spreadsheet* with the document at *path*.

    Cell evaluation errors do not abort the load; the affected cells keep
    their error markers.

    Returns:
        Names of the cells whose formulas failed to evaluate.

    Raises:
        FileNotFoundError: If *path* does not exist.
        SheetFormatError: If the document is malformed.
        CircularDependencyError: If some formulas never became resolvable.
    """
    path = Path(path)
    try:
        document = read_document(path)
        errors = apply_document(spreadsheet, document)
    except SheetFormatError as exc:
        emit_error(
            EventType.sheet_load_failed,
            str(exc),
            {"path": str(path)},
            error_code=LOAD_FORMAT_ERROR,
        )
        raise
    except CircularDependencyError as exc:
        emit_error(
            EventType.sheet_load_failed,
            str(exc),
            {"path": str(path), "cells": exc.cells},
            error_code=LOAD_CIRCULAR_DEPENDENCY,
        )
        raise

    emit_info(
        EventType.sheet_loaded,
        f"Loaded {len(document.cells)} cell(s) from {path.name}",
        {"path": str(path), "cells": len(document.cells), "errors": errors},
    )
    return errors


def apply_document(spreadsheet: Any, document: SheetDocument) -> list[str]:
    """Clear *spreadsheet* and commit every record of *document*.

    Formula cells that reference other formula cells are deferred until
    every formula they read has been committed.
    """
    spreadsheet.clear()

    records: dict[str, CellRecord] = {}
    for record in document.cells:
        try:
            name = record.name
            cell = spreadsheet.get_cell_by_name(name)
        except InvalidCellReferenceError as exc:
            raise SheetFormatError(f"Record {record.column}{record.row + 1}: {exc}") from exc
        records[name] = record
        if record.bg_color != DEFAULT_BG_COLOR:
            cell.bg_color = record.bg_color

    errors: list[str] = []

    def commit(name: str) -> None:
        try:
            spreadsheet.set_text(name, records[name].text)
        except CellEvaluationError as exc:
            errors.append(name)
            emit_warning(
                EventType.cell_error,
                f"Loaded cell {name} did not evaluate: {exc}",
                {"cell": name, "text": records[name].text},
            )

    deferred: dict[str, list[str]] = {}
    for name, record in records.items():
        if not record.text:
            continue
        refs = _formula_references(record.text)
        if refs:
            deferred[name] = refs
        else:
            commit(name)

    if deferred:
        logger.debug("deferring %d formula cell(s): %s", len(deferred), list(deferred))
        emit_info(
            EventType.load_deferred,
            f"Deferred {len(deferred)} formula cell(s)",
            {"cells": list(deferred)},
        )

    while deferred:
        ready = [
            name
            for name, refs in deferred.items()
            if not any(ref != name and ref in deferred for ref in refs)
        ]
        if not ready:
            raise CircularDependencyError(sorted(deferred))
        for name in ready:
            del deferred[name]
            commit(name)

    return errors


def _formula_references(text: str) -> list[str]:
    """Canonical names of the cells a formula text reads; ``[]`` for literals."""
    if not text.startswith(FORMULA_MARKER):
        return []
    try:
        written_refs = extract_cell_references(text[1:])
    except FormulaError:
        # Committed immediately; the commit reports the token error.
        return []
    refs: list[str] = []
    for written in written_refs:
        try:
            refs.append(normalize_addr(written))
        except InvalidCellReferenceError:
            continue
    return refs
