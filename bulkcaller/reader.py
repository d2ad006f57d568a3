import csv
from pathlib import Path
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from bulkcaller.errors import InputFileError, UnsupportedFormatError


CSV_SUFFIXES = {".csv"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


def read_rows(path: str | Path) -> tuple[tuple[str, ...], list[tuple[str, ...]]]:
    """Return the header row and the data rows of a CSV or Excel file."""
    records = read_records(path)
    if len(records) < 2:
        raise InputFileError(f"no data rows found in {path} (need at least header + 1 data row)")

    header = tuple(records[0])
    return header, [tuple(record) for record in records[1:]]


def read_records(path: str | Path) -> list[list[str]]:
    input_path = Path(path)
    if not input_path.exists():
        raise InputFileError(f"input file not found: {input_path}")
    if not input_path.is_file():
        raise InputFileError(f"input path is not a file: {input_path}")

    suffix = input_path.suffix.lower()
    if suffix in CSV_SUFFIXES:
        return _read_csv(input_path)
    if suffix in EXCEL_SUFFIXES:
        return _read_excel(input_path)
    raise UnsupportedFormatError(
        f"unsupported file format: {suffix or '<none>'} (expected .csv, .xlsx or .xlsm)"
    )


def _read_csv(path: Path) -> list[list[str]]:
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as infile:
            return [row for row in csv.reader(infile) if row]
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise InputFileError(f"reading CSV {path}: {exc}") from exc


def _read_excel(path: Path) -> list[list[str]]:
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (OSError, BadZipFile, InvalidFileException, KeyError, ValueError) as exc:
        raise InputFileError(f"opening Excel file {path}: {exc}") from exc

    try:
        if not workbook.worksheets:
            raise InputFileError(f"no sheets found in Excel file {path}")

        records: list[list[str]] = []
        for values in workbook.worksheets[0].iter_rows(values_only=True):
            cells = [_cell_text(value) for value in values]
            while cells and cells[-1] == "":
                cells.pop()
            records.append(cells)
    finally:
        workbook.close()

    while records and not records[-1]:
        records.pop()
    return records


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
