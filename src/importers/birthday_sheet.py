"""Team roster spreadsheet parsing (XLSX and CSV).

Rosters come from different people and rarely share a header layout, so
column names are matched against alias sets after lower-casing and removing
spaces and underscores ("Date of Birth", "date_of_birth" and "DateOfBirth"
all mean the birthday column).
"""

import csv
import io
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.utils.datetime import from_excel

from src.models.calendar import BirthdayRecord
from src.utils.date_parser import parse_date_value
from src.utils.logger import log_info, log_debug


COLUMN_ALIASES = {
    "name": {"name", "fullname", "membername"},
    "birthday": {"birthday", "dob", "dateofbirth", "date"},
    "phone": {"phone", "phonenumber"},
    "sub_unit": {"subunit", "unit", "department"},
}


@dataclass
class BirthdaySheet:
    """Parsed roster: valid records plus the rows that were skipped."""
    records: List[BirthdayRecord] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)


def normalize_header(header: Any) -> str:
    return re.sub(r"[\s_]+", "", str(header or "").strip().lower())


def map_columns(headers: Sequence[Any]) -> Dict[str, int]:
    """Map field names to column indexes; the first matching column wins.

    Raises:
        ValueError: If no name or no birthday column is present
    """
    columns: Dict[str, int] = {}
    for index, header in enumerate(headers):
        key = normalize_header(header)
        for field_name, aliases in COLUMN_ALIASES.items():
            if key in aliases and field_name not in columns:
                columns[field_name] = index

    missing = [name for name in ("name", "birthday") if name not in columns]
    if missing:
        raise ValueError(f"Missing required column(s): {', '.join(missing)}")
    return columns


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Phone numbers typed into numeric cells
        return str(int(value))
    return str(value).strip()


def _cell_date(value: Any) -> Optional[date]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            converted = from_excel(value)
        except (ValueError, OverflowError, TypeError):
            return None
        return converted.date() if isinstance(converted, datetime) else converted
    return parse_date_value(value)


def _parse_rows(rows: List[Sequence[Any]], first_row_number: int = 2) -> BirthdaySheet:
    if not rows:
        raise ValueError("Spreadsheet is empty")

    columns = map_columns(rows[0])
    sheet = BirthdaySheet()

    def cell(row: Sequence[Any], field_name: str) -> Any:
        index = columns.get(field_name)
        if index is None or index >= len(row):
            return None
        return row[index]

    for offset, row in enumerate(rows[1:]):
        row_number = first_row_number + offset
        if not any(_cell_text(value) for value in row):
            continue

        name = _cell_text(cell(row, "name"))
        if not name:
            sheet.skipped.append({"row": row_number, "reason": "missing name"})
            continue

        raw_birthday = cell(row, "birthday")
        birthday = _cell_date(raw_birthday)
        if birthday is None:
            sheet.skipped.append({
                "row": row_number,
                "reason": f"unparsable birthday: {_cell_text(raw_birthday) or '<empty>'}",
            })
            continue

        sheet.records.append(BirthdayRecord(
            name=name,
            birthday=birthday,
            phone=_cell_text(cell(row, "phone")),
            sub_unit=_cell_text(cell(row, "sub_unit")),
        ))

    log_info(f"Parsed roster: {len(sheet.records)} valid rows, {len(sheet.skipped)} skipped")
    for skipped in sheet.skipped:
        log_debug(f"Skipped row {skipped['row']}: {skipped['reason']}")
    return sheet


def read_birthdays_from_excel(content: bytes) -> BirthdaySheet:
    """Parse the first worksheet of an XLSX workbook (header in row 1).

    Raises:
        ValueError: If the content is not a readable workbook
    """
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError) as e:
        raise ValueError("Not a valid .xlsx workbook") from e
    try:
        worksheet = workbook.worksheets[0]
        rows = [list(row) for row in worksheet.iter_rows(values_only=True)]
    finally:
        workbook.close()
    return _parse_rows(rows)


def read_birthdays_from_csv(text: str) -> BirthdaySheet:
    """Parse CSV text with a header row."""
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    rows = [row for row in reader]
    return _parse_rows(rows)
