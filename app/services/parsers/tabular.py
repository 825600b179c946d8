"""
Spreadsheet reader for CSV and XLSX uploads.

Produces ordered headers plus header -> value rows, skipping blank rows.
Row numbers are spreadsheet rows (header is row 1).
"""

import csv
import io
import logging
import zipfile
from typing import Optional, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from app.services.errors import ImportValidationError
from app.services.parsers.base import SheetRow, Table, cell_to_str

logger = logging.getLogger(__name__)

XLSX_EXTENSIONS = (".xlsx", ".xlsm")


def _decode(content: Union[str, bytes]) -> str:
    if isinstance(content, bytes):
        # Try UTF-8 first, then latin-1 as fallback
        try:
            return content.decode("utf-8-sig")  # Handle BOM
        except UnicodeDecodeError:
            return content.decode("latin-1")
    return content


def read_csv(content: Union[str, bytes]) -> Table:
    """Read CSV content into a Table."""
    reader = csv.reader(io.StringIO(_decode(content)))
    table = Table()

    try:
        table.headers = [h.strip() for h in next(reader)]
    except StopIteration:
        return table

    for row_number, row in enumerate(reader, start=2):
        if not row or all(cell.strip() == "" for cell in row):
            continue
        values = {}
        for header, cell in zip(table.headers, row):
            # Duplicate (usually blank) headers keep the first non-empty cell
            if values.get(header):
                continue
            values[header] = cell.strip()
        table.rows.append(SheetRow(row_number=row_number, values=values))

    return table


def read_xlsx(content: bytes) -> Table:
    """Read the first worksheet of an XLSX workbook into a Table."""
    workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        table = Table()
        rows = sheet.iter_rows(values_only=True)

        try:
            table.headers = [cell_to_str(h) for h in next(rows)]
        except StopIteration:
            return table

        for row_number, row in enumerate(rows, start=2):
            cells = [cell_to_str(c) for c in row]
            if not any(cells):
                continue
            values = {}
            for header, cell in zip(table.headers, cells):
                if values.get(header):
                    continue
                values[header] = cell
            table.rows.append(SheetRow(row_number=row_number, values=values))
        return table
    finally:
        workbook.close()


def read_table(content: Union[str, bytes], filename: Optional[str] = None) -> Table:
    """
    Read an uploaded spreadsheet.

    XLSX is selected by file extension; everything else is read as CSV.
    A file that cannot be read raises ImportValidationError.
    """
    try:
        if filename and filename.lower().endswith(XLSX_EXTENSIONS) and isinstance(content, bytes):
            table = read_xlsx(content)
        else:
            table = read_csv(content)
    except (csv.Error, zipfile.BadZipFile, InvalidFileException, KeyError) as e:
        logger.warning(f"Unreadable upload {filename or 'upload'}: {e}")
        raise ImportValidationError("Could not read file", errors=[], details=str(e)) from e

    logger.info(f"Read {len(table.rows)} rows with {len(table.headers)} columns from {filename or 'upload'}")
    return table
