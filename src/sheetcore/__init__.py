"""sheetcore -- reactive spreadsheet formula engine.

Public API::

    from sheetcore import Spreadsheet

    sheet = Spreadsheet(rows=50, columns=26)
    sheet.set_text("A1", "5")
    sheet.set_text("B1", "=A1*2")
    sheet.get_cell_by_name("B1").value  # "10"
"""

__version__ = "0.4.0"

from sheetcore.cell import Cell, CellState, ErrorKind
from sheetcore.spreadsheet import Spreadsheet

__all__ = [
    "Cell",
    "CellState",
    "ErrorKind",
    "Spreadsheet",
    "__version__",
]
