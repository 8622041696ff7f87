"""A1-style cell name codec.

Column letters are base-26 (A=1 ... Z=26, AA=27, one-based); the row
number is one-based.  Internally both become zero-based indices.
"""

from __future__ import annotations

import re

from sheetcore.formulas.errors import InvalidCellReferenceError

_ADDR_RE = re.compile(r"^([A-Z]+)([0-9]+)$")


def col_letter_to_index(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    if not letters or not letters.isalpha():
        raise InvalidCellReferenceError(letters, "column must be letters")
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def index_to_col_letter(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    if idx < 0:
        raise InvalidCellReferenceError(str(idx), "column index must be >= 0")
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def parse_addr(addr: str) -> tuple[int, int]:
    """Parse 'A1' -> (row_0based, col_0based).  Lowercase letters are accepted.

    Raises:
        InvalidCellReferenceError: On an empty name, missing letters or
            digits, or a row number of zero.
    """
    if not addr or len(addr) < 2:
        raise InvalidCellReferenceError(addr, "too short")
    m = _ADDR_RE.match(addr.upper())
    if not m:
        raise InvalidCellReferenceError(addr)
    row = int(m.group(2)) - 1
    if row < 0:
        raise InvalidCellReferenceError(addr, "rows start at 1")
    return row, col_letter_to_index(m.group(1))


def make_addr(row: int, col: int) -> str:
    """Build cell address from 0-based row/col."""
    if row < 0:
        raise InvalidCellReferenceError(str(row), "row index must be >= 0")
    return f"{index_to_col_letter(col)}{row + 1}"


def normalize_addr(addr: str) -> str:
    """Canonical (uppercase) spelling of a cell name."""
    return make_addr(*parse_addr(addr))
