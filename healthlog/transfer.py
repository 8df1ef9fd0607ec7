import json
import re
from io import BytesIO
from typing import Sequence
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from healthlog.errors import ImportFormatError
from healthlog.models import HealthRecord

EXPORT_SHEET_TITLE = "健康记录"
EXPORT_HEADERS = (
    "日期",
    "体重(kg)",
    "饮食评分",
    "饮水评分",
    "运动评分",
    "心情评分",
    "睡眠评分",
    "排便情况",
    "备注",
)
EXPORT_COLUMN_WIDTHS = (12, 10, 10, 10, 10, 10, 10, 10, 30)
EXCEL_EXTENSION = ".xlsx"
UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')

IMPORT_FORMATS = {"json": "json", "xlsx": "excel", "xlsm": "excel"}


def detect_import_format(filename: str | None) -> str | None:
    if not filename or "." not in filename:
        return None
    return IMPORT_FORMATS.get(filename.rsplit(".", 1)[1].lower())


def parse_json_rows(content: bytes | str) -> list:
    try:
        payload = json.loads(content)
    except ValueError as exc:
        raise ImportFormatError("The file is not valid JSON.") from exc
    if not isinstance(payload, list):
        raise ImportFormatError("Invalid file format. The JSON file must contain an array of records.")
    return payload


def _blank_row(values) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in values)


def parse_workbook_rows(content: bytes) -> list[dict]:
    """Read the first sheet of an .xlsx file as header-keyed rows."""
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ImportFormatError("Could not read the Excel file.") from exc

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        keys = [str(cell).strip() if cell is not None else None for cell in header]

        parsed = []
        for values in rows:
            if values is None or _blank_row(values):
                continue
            parsed.append({key: value for key, value in zip(keys, values) if key})
        return parsed
    finally:
        workbook.close()


def export_filename(name: str | None, default: str) -> str:
    stem = (name or "").strip()
    if stem.lower().endswith(EXCEL_EXTENSION):
        stem = stem[: -len(EXCEL_EXTENSION)]
    stem = UNSAFE_FILENAME_CHARS.sub("_", stem).strip(" .")
    return f"{stem or default}{EXCEL_EXTENSION}"


def export_workbook(records: Sequence[HealthRecord]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = EXPORT_SHEET_TITLE
    sheet.append(list(EXPORT_HEADERS))

    for record in records:
        sheet.append(
            [
                record.date,
                record.weight,
                record.diet_score or 0,
                record.water_score or 0,
                record.exercise_score or 0,
                record.mood_score or 0,
                record.sleep_condition or 0,
                "是" if record.has_bowel_movement else "否",
                record.notes or "",
            ]
        )

    for index, width in enumerate(EXPORT_COLUMN_WIDTHS, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_json(records: Sequence[HealthRecord]) -> str:
    rows = []
    for record in records:
        row = record.to_row()
        row.pop("id", None)
        row.pop("user_id", None)
        rows.append(row)
    return json.dumps(rows, ensure_ascii=False, indent=2)
