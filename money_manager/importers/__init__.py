"""CSV import package."""

from money_manager.importers.csv_import import (
    ACCOUNT_COLUMNS,
    DEBT_COLUMNS,
    REPAYMENT_COLUMNS,
    REQUIRED_COLUMNS,
    AccountRef,
    CategoryRef,
    CsvImportError,
    ParsedRow,
    RowError,
    match_account,
    match_category,
    normalize_header,
    parse_account_row,
    parse_csv,
    parse_debt_row,
    parse_debt_status,
    parse_repayment_row,
    parse_row,
)

__all__ = [
    "ACCOUNT_COLUMNS",
    "DEBT_COLUMNS",
    "REPAYMENT_COLUMNS",
    "REQUIRED_COLUMNS",
    "AccountRef",
    "CategoryRef",
    "CsvImportError",
    "ParsedRow",
    "RowError",
    "match_account",
    "match_category",
    "normalize_header",
    "parse_account_row",
    "parse_csv",
    "parse_debt_row",
    "parse_debt_status",
    "parse_repayment_row",
    "parse_row",
]
