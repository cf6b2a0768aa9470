"""Load an .xlsx payload into plain grids of cells.

Detectors work on `Sheet` grids rather than openpyxl objects so they can be fed
synthetic rows in tests and so each sheet is read exactly once.
"""

from dataclasses import dataclass, field
from io import BytesIO
import logging
import zipfile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from stockviewer.parsers.common import IngestionError

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class Cell:
    """Cell value plus the formatting the detectors care about."""

    value: object = None
    bold: bool = False
    number_format: str | None = None


@dataclass
class Sheet:
    name: str
    rows: list[list[Cell]] = field(default_factory=list)

    def cell(self, row: int, col: int) -> Cell:
        """Cell at (row, col); out-of-range positions read as empty."""
        if row < 0 or row >= len(self.rows):
            return _EMPTY
        cells = self.rows[row]
        if col < 0 or col >= len(cells):
            return _EMPTY
        return cells[col]

    def value(self, row: int, col: int) -> object:
        return self.cell(row, col).value


_EMPTY = Cell()


def sheet_from_values(name: str, rows: list[list[object]], bold_rows: set[int] | None = None) -> Sheet:
    """Build a Sheet from bare values; rows listed in `bold_rows` are bold."""
    bold_rows = bold_rows or set()
    return Sheet(
        name=name,
        rows=[[Cell(value=v, bold=r in bold_rows) for v in row] for r, row in enumerate(rows)],
    )


def load_sheets(content: bytes, source: str = "workbook") -> list[Sheet]:
    """Read every worksheet of an .xlsx file into `Sheet` grids.

    Raises:
        IngestionError: If the payload is not a readable .xlsx workbook.
    """
    try:
        # Not read-only: fonts (bold) are needed by the fixed-layout detector.
        workbook = load_workbook(BytesIO(content), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise IngestionError(f"Could not read {source} as an .xlsx workbook: {e}") from e

    sheets: list[Sheet] = []
    try:
        for ws in workbook.worksheets:
            rows: list[list[Cell]] = []
            for row in ws.iter_rows():
                rows.append(
                    [
                        Cell(
                            value=c.value,
                            bold=bool(c.font is not None and c.font.b),
                            number_format=c.number_format,
                        )
                        for c in row
                    ]
                )
            sheets.append(Sheet(name=ws.title, rows=rows))
    finally:
        workbook.close()

    logger.info(f"[xlsx] Loaded {len(sheets)} sheet(s) from {source}")
    return sheets
