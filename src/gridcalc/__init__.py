"""gridcalc -- in-memory spreadsheet engine with incremental recomputation."""

from gridcalc.cell import Cell, CellKind, FormulaCell, NumberCell, StringCell, make_cell
from gridcalc.dag import CycleError, DependencyGraph
from gridcalc.errors import InvalidCellIdError, SheetError, SheetFormatError
from gridcalc.formulas.errors import FormulaError, FormulaParseError, FormulaRefError
from gridcalc.persistence import from_save_string, load_sheet, save_sheet, to_save_string
from gridcalc.sheet import Sheet, validate_cell_id

__version__ = "0.3.0"

__all__ = [
    "Cell",
    "CellKind",
    "CycleError",
    "DependencyGraph",
    "FormulaCell",
    "FormulaError",
    "FormulaParseError",
    "FormulaRefError",
    "InvalidCellIdError",
    "NumberCell",
    "Sheet",
    "SheetError",
    "SheetFormatError",
    "StringCell",
    "__version__",
    "from_save_string",
    "load_sheet",
    "make_cell",
    "save_sheet",
    "to_save_string",
    "validate_cell_id",
]
