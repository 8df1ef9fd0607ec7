from datetime import date
from typing import Iterable, Sequence

import httpx
from flask import Flask, current_app
from postgrest.exceptions import APIError
from sqlalchemy.exc import SQLAlchemyError
from supabase import Client, create_client

from healthlog import db
from healthlog.errors import StoreConfigError, StoreError
from healthlog.models import SCORE_FIELDS, DailyRecord, HealthRecord

TABLE_NAME = "daily_records"
CONFLICT_KEY = "user_id,date"


class RecordStore:
    """Persistence for daily records, keyed by (user_id, date).

    Writes are upserts on that key: an existing day is overwritten in full,
    never merged field by field. Every method is scoped to one user.
    """

    def list_records(self, user_id) -> list[HealthRecord]:
        raise NotImplementedError

    def get_record(self, user_id, record_id) -> HealthRecord | None:
        raise NotImplementedError

    def upsert_one(self, record: HealthRecord) -> HealthRecord:
        written = self.upsert_many([record])
        return written[0]

    def upsert_many(self, records: Sequence[HealthRecord]) -> list[HealthRecord]:
        raise NotImplementedError

    def delete_one(self, user_id, record_id) -> bool:
        raise NotImplementedError

    def delete_many(self, user_id, record_ids: Sequence) -> None:
        raise NotImplementedError

    def dates_with_records(self, user_id, dates: Iterable[str]) -> list[str]:
        raise NotImplementedError


def _upsert_payload(record: HealthRecord) -> dict:
    row = record.to_row()
    row.pop("id", None)
    return row


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Invalid record date: {value!r}") from exc


class SqlRecordStore(RecordStore):
    def list_records(self, user_id) -> list[HealthRecord]:
        rows = (
            DailyRecord.query.filter_by(user_id=user_id)
            .order_by(DailyRecord.date.desc())
            .all()
        )
        return [HealthRecord.from_model(row) for row in rows]

    def get_record(self, user_id, record_id) -> HealthRecord | None:
        row = DailyRecord.query.filter_by(id=record_id, user_id=user_id).first()
        return HealthRecord.from_model(row) if row else None

    def upsert_many(self, records: Sequence[HealthRecord]) -> list[HealthRecord]:
        if not records:
            return []

        by_key: dict[tuple, DailyRecord] = {}
        ordered: list[DailyRecord] = []
        try:
            for user_id in {record.user_id for record in records}:
                days = [_parse_day(r.date) for r in records if r.user_id == user_id]
                existing = DailyRecord.query.filter(
                    DailyRecord.user_id == user_id,
                    DailyRecord.date.in_(days),
                ).all()
                for row in existing:
                    by_key[(row.user_id, row.date)] = row

            for record in records:
                day = _parse_day(record.date)
                row = by_key.get((record.user_id, day))
                if row is None:
                    row = DailyRecord(user_id=record.user_id, date=day)
                    db.session.add(row)
                    by_key[(record.user_id, day)] = row
                row.weight = record.weight
                for field_name in SCORE_FIELDS:
                    setattr(row, field_name, getattr(record, field_name))
                row.has_bowel_movement = record.has_bowel_movement
                row.notes = record.notes
                ordered.append(row)

            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f"Saving records failed: {exc}") from exc
        except StoreError:
            db.session.rollback()
            raise

        return [HealthRecord.from_model(row) for row in ordered]

    def delete_one(self, user_id, record_id) -> bool:
        row = DailyRecord.query.filter_by(id=record_id, user_id=user_id).first()
        if row is None:
            return False
        try:
            db.session.delete(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f"Deleting record failed: {exc}") from exc
        return True

    def delete_many(self, user_id, record_ids: Sequence) -> None:
        if not record_ids:
            return
        try:
            DailyRecord.query.filter(
                DailyRecord.user_id == user_id,
                DailyRecord.id.in_(list(record_ids)),
            ).delete(synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(f"Deleting records failed: {exc}") from exc

    def dates_with_records(self, user_id, dates: Iterable[str]) -> list[str]:
        days = []
        for value in dates:
            try:
                days.append(date.fromisoformat(value))
            except (TypeError, ValueError):
                continue
        if not days:
            return []
        rows = (
            db.session.query(DailyRecord.date)
            .filter(DailyRecord.user_id == user_id, DailyRecord.date.in_(days))
            .all()
        )
        return sorted({row.date.isoformat() for row in rows})


class SupabaseRecordStore(RecordStore):
    def __init__(self, client: Client, table_name: str = TABLE_NAME):
        self.client = client
        self.table_name = table_name

    def _table(self):
        return self.client.table(self.table_name)

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as exc:
            message = getattr(exc, "message", None) or str(exc)
            raise StoreError(f"{action} failed: {message}") from exc

    def list_records(self, user_id) -> list[HealthRecord]:
        response = self._execute(
            self._table().select("*").eq("user_id", user_id).order("date", desc=True),
            "Loading records",
        )
        return [HealthRecord.from_row(row) for row in response.data or []]

    def get_record(self, user_id, record_id) -> HealthRecord | None:
        response = self._execute(
            self._table().select("*").eq("id", record_id).eq("user_id", user_id).limit(1),
            "Loading record",
        )
        rows = response.data or []
        return HealthRecord.from_row(rows[0]) if rows else None

    def upsert_many(self, records: Sequence[HealthRecord]) -> list[HealthRecord]:
        if not records:
            return []
        response = self._execute(
            self._table().upsert(
                [_upsert_payload(record) for record in records],
                on_conflict=CONFLICT_KEY,
                ignore_duplicates=False,
            ),
            "Saving records",
        )
        return [HealthRecord.from_row(row) for row in response.data or []]

    def delete_one(self, user_id, record_id) -> bool:
        response = self._execute(
            self._table().delete().eq("id", record_id).eq("user_id", user_id),
            "Deleting record",
        )
        return bool(response.data)

    def delete_many(self, user_id, record_ids: Sequence) -> None:
        if not record_ids:
            return
        self._execute(
            self._table().delete().in_("id", list(record_ids)).eq("user_id", user_id),
            "Deleting records",
        )

    def dates_with_records(self, user_id, dates: Iterable[str]) -> list[str]:
        candidates = sorted(set(dates))
        if not candidates:
            return []
        response = self._execute(
            self._table().select("date").eq("user_id", user_id).in_("date", candidates),
            "Checking existing dates",
        )
        return sorted({str(row["date"]) for row in response.data or []})


def init_record_store(app: Flask) -> RecordStore:
    backend = app.config.get("RECORD_STORE") or "sql"
    if backend == "sql":
        store = SqlRecordStore()
    elif backend == "supabase":
        url = app.config.get("SUPABASE_URL")
        key = app.config.get("SUPABASE_KEY")
        if not url or not key:
            raise StoreConfigError("SUPABASE_URL and SUPABASE_KEY must be set when RECORD_STORE=supabase.")
        store = SupabaseRecordStore(create_client(url, key))
    else:
        raise StoreConfigError(f"Unknown RECORD_STORE backend: {backend!r} (expected 'sql' or 'supabase').")

    app.extensions["record_store"] = store
    return store


def get_record_store() -> RecordStore:
    return current_app.extensions["record_store"]
