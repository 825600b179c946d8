from app.services.parsers.base import RowIssue, SheetRow, Table, parse_date, resolve_column
from app.services.parsers.tabular import read_table
from app.services.parsers.royalty_csv import RoyaltyCsvParser, CsvImportRow, CsvParseResult
from app.services.parsers.catalog_csv import CatalogCsvParser

__all__ = [
    "RowIssue",
    "SheetRow",
    "Table",
    "parse_date",
    "resolve_column",
    "read_table",
    "RoyaltyCsvParser",
    "CsvImportRow",
    "CsvParseResult",
    "CatalogCsvParser",
]
