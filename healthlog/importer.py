"""Bulk import of daily records.

Rows arrive as loose mappings (parsed JSON objects or spreadsheet rows whose
headers may be English, snake_case or the Chinese labels used by the export).
Each row is normalized into a ``HealthRecord``, rows without a positive
weight are dropped, the batch is checked against days that already have a
record, and the survivors are upserted in fixed-size chunks.

The duplicate check and the write are two separate store calls. A concurrent
writer can still land a record for a "free" date in between, in which case
the upsert overwrites it.
"""

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from dateutil import parser as dateparser

from healthlog.errors import (
    DuplicateDatesError,
    NoValidRowsError,
    PartialWriteError,
    RecordValidationError,
    StoreError,
)
from healthlog.models import SCORE_FIELDS, HealthRecord
from healthlog.store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100
SCORE_MIN = 0
SCORE_MAX = 10
SPREADSHEET_EPOCH = date(1899, 12, 30)
ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
LEADING_FLOAT_RE = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)")
LEADING_INT_RE = re.compile(r"^\s*([-+]?\d+)")
TRUE_STRINGS = {"1", "true", "yes", "y", "on", "是"}

# First present, non-empty key wins. Order matters when a row carries several.
FIELD_ALIASES = {
    "date": ("date", "Date", "日期"),
    "weight": ("weight", "Weight", "体重", "体重(kg)"),
    "notes": ("notes", "Notes", "备注"),
    "diet_score": ("diet_score", "饮食评分", "Diet Score"),
    "water_score": ("water_score", "饮水评分", "Water Score"),
    "exercise_score": ("exercise_score", "运动评分", "Exercise Score"),
    "mood_score": ("mood_score", "心情评分", "Mood Score"),
    "sleep_condition": ("sleep_condition", "睡眠评分", "Sleep Score"),
    "has_bowel_movement": ("has_bowel_movement", "排便情况", "Bowel Movement"),
}

SCORE_LABELS = {
    "diet_score": "Diet score",
    "water_score": "Water score",
    "exercise_score": "Exercise score",
    "mood_score": "Mood score",
    "sleep_condition": "Sleep score",
}


@dataclass
class ImportResult:
    total: int
    written: int
    skipped: int
    merged: int = 0
    records: list[HealthRecord] = field(default_factory=list)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_alias(row: Mapping, aliases: Sequence[str]):
    for key in aliases:
        value = row.get(key)
        if not _is_blank(value):
            return value
    return None


def coerce_date(value, today: date | None = None) -> str:
    fallback = (today or date.today()).isoformat()

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        if ISO_DATE_RE.fullmatch(value):
            return value
        try:
            return dateparser.parse(value.strip()).date().isoformat()
        except (ValueError, OverflowError, TypeError):
            return fallback
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return fallback
        try:
            return (SPREADSHEET_EPOCH + timedelta(days=math.floor(value))).isoformat()
        except OverflowError:
            return fallback
    return fallback


def _leading_number(value, pattern: re.Pattern):
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    match = pattern.match(str(value))
    return match.group(1) if match else None


def coerce_weight(value) -> float:
    """Parse a weight in kg; anything unparseable or non-positive becomes 0."""
    raw = _leading_number(value, LEADING_FLOAT_RE)
    if raw is None:
        return 0.0
    weight = float(raw)
    if not math.isfinite(weight) or weight <= 0:
        return 0.0
    return weight


def coerce_score(value) -> int:
    raw = _leading_number(value, LEADING_INT_RE)
    if raw is None:
        return 0
    score = int(raw) if isinstance(raw, str) else int(math.trunc(raw))
    return min(max(score, SCORE_MIN), SCORE_MAX)


def coerce_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return False


def coerce_notes(value) -> str:
    if value is None:
        return ""
    return str(value)


def normalize_row(row, user_id, today: date | None = None) -> HealthRecord:
    if not isinstance(row, Mapping):
        row = {}

    record = HealthRecord(
        user_id=user_id,
        date=coerce_date(resolve_alias(row, FIELD_ALIASES["date"]), today=today),
        weight=coerce_weight(resolve_alias(row, FIELD_ALIASES["weight"])),
        has_bowel_movement=coerce_flag(resolve_alias(row, FIELD_ALIASES["has_bowel_movement"])),
        notes=coerce_notes(resolve_alias(row, FIELD_ALIASES["notes"])),
    )
    for field_name in SCORE_FIELDS:
        setattr(record, field_name, coerce_score(resolve_alias(row, FIELD_ALIASES[field_name])))
    return record


def validate_batch(candidates: Iterable[HealthRecord]) -> list[HealthRecord]:
    valid = [record for record in candidates if record.weight > 0]
    if not valid:
        raise NoValidRowsError()
    return valid


def collapse_same_day(records: Sequence[HealthRecord]) -> list[HealthRecord]:
    """Keep one record per date; a later row replaces an earlier one for that day."""
    by_day: dict[str, HealthRecord] = {}
    for record in records:
        by_day.pop(record.date, None)
        by_day[record.date] = record
    return list(by_day.values())


def check_duplicate_dates(store: RecordStore, user_id, records: Sequence[HealthRecord]) -> None:
    dates = sorted({record.date for record in records})
    if not dates:
        return
    existing = store.dates_with_records(user_id, dates)
    if existing:
        raise DuplicateDatesError(sorted(set(existing)))


def _chunks(items: list, size: int):
    if size < 1:
        raise ValueError("chunk size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def bulk_write(
    store: RecordStore,
    records: Sequence[HealthRecord],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> list[HealthRecord]:
    """Upsert records chunk by chunk, in order.

    Stops at the first failing chunk. Chunks written before it stay written;
    in that case the error is raised as ``PartialWriteError`` so callers can
    tell the user how many records were saved.
    """
    written: list[HealthRecord] = []
    for chunk in _chunks(list(records), chunk_size):
        try:
            written.extend(store.upsert_many(chunk))
        except StoreError as exc:
            if written:
                raise PartialWriteError(len(written), exc, action="saved") from exc
            raise
    return written


def bulk_delete(
    store: RecordStore,
    user_id,
    record_ids: Iterable,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    deleted = 0
    for chunk in _chunks(list(record_ids), chunk_size):
        try:
            store.delete_many(user_id, chunk)
        except StoreError as exc:
            if deleted:
                raise PartialWriteError(deleted, exc, action="deleted") from exc
            raise
        deleted += len(chunk)
    return deleted


def run_import(
    store: RecordStore,
    user_id,
    rows: Sequence,
    *,
    allow_update: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    today: date | None = None,
) -> ImportResult:
    candidates = [normalize_row(row, user_id, today=today) for row in rows]
    valid = validate_batch(candidates)
    skipped = len(candidates) - len(valid)
    unique = collapse_same_day(valid)
    merged = len(valid) - len(unique)
    if merged:
        logger.info("Import for user_id=%s merged %d rows sharing a date", user_id, merged)
    valid = unique

    if not allow_update:
        try:
            check_duplicate_dates(store, user_id, valid)
        except DuplicateDatesError as exc:
            logger.info("Import rejected for user_id=%s: %d duplicate dates", user_id, len(exc.dates))
            raise

    try:
        written = bulk_write(store, valid, chunk_size=chunk_size)
    except PartialWriteError as exc:
        logger.warning(
            "Import for user_id=%s stopped after %d of %d records: %s",
            user_id,
            exc.committed,
            len(valid),
            exc.cause,
        )
        raise

    logger.info(
        "Imported %d records for user_id=%s (%d rows, %d skipped, %d merged)",
        len(written),
        user_id,
        len(candidates),
        skipped,
        merged,
    )
    return ImportResult(
        total=len(candidates),
        written=len(written),
        skipped=skipped,
        merged=merged,
        records=written,
    )


def _parse_form_score(form: Mapping, field_name: str) -> int | None:
    raw = form.get(field_name)
    if _is_blank(raw):
        return None
    try:
        score = int(str(raw).strip())
    except ValueError as exc:
        raise RecordValidationError(f"{SCORE_LABELS[field_name]} must be a whole number.") from exc
    if score < SCORE_MIN or score > SCORE_MAX:
        raise RecordValidationError(f"{SCORE_LABELS[field_name]} must be between {SCORE_MIN} and {SCORE_MAX}.")
    return score


def parse_record_form(form: Mapping, user_id, today: date | None = None) -> HealthRecord:
    raw_weight = form.get("weight")
    try:
        weight = float(str(raw_weight).strip()) if not _is_blank(raw_weight) else None
    except ValueError:
        weight = None
    if weight is None or not math.isfinite(weight) or weight <= 0:
        raise RecordValidationError("Enter a valid weight greater than zero.")

    raw_date = form.get("date")
    if _is_blank(raw_date):
        day = (today or date.today()).isoformat()
    else:
        try:
            day = date.fromisoformat(str(raw_date).strip()).isoformat()
        except ValueError as exc:
            raise RecordValidationError("Date must use the YYYY-MM-DD format.") from exc

    notes = form.get("notes")
    record = HealthRecord(
        user_id=user_id,
        date=day,
        weight=weight,
        has_bowel_movement=str(form.get("has_bowel_movement")).lower() in {"1", "true", "yes", "on"},
        notes=(notes.strip() or None) if isinstance(notes, str) else None,
    )
    for field_name in SCORE_FIELDS:
        setattr(record, field_name, _parse_form_score(form, field_name))
    return record


def submit_record(
    store: RecordStore,
    user_id,
    form: Mapping,
    *,
    replace_id=None,
    today: date | None = None,
) -> HealthRecord:
    """Validate one submitted day and upsert it on (user_id, date).

    ``replace_id`` is the record being edited. If the edit moved it to another
    day, the old row is removed once the new one is saved. Moving onto a day
    that already has a record is refused.
    """
    record = parse_record_form(form, user_id, today=today)
    if replace_id is not None:
        current = store.get_record(user_id, replace_id)
        if current is not None and current.date != record.date:
            if store.dates_with_records(user_id, [record.date]):
                raise RecordValidationError(
                    f"A record for {record.date} already exists. Edit or delete that day first."
                )
    saved = store.upsert_one(record)
    if replace_id is not None and str(saved.id) != str(replace_id):
        store.delete_one(user_id, replace_id)
    return saved
