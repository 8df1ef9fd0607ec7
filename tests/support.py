from itertools import count

from healthlog.errors import StoreError
from healthlog.models import HealthRecord
from healthlog.store import RecordStore


class FakeRecordStore(RecordStore):
    """In-memory store that records every call it receives."""

    def __init__(self, existing: list[HealthRecord] | None = None, fail_on_upsert_call: int | None = None):
        self.rows: dict[tuple, HealthRecord] = {}
        self.calls: list[tuple] = []
        self.fail_on_upsert_call = fail_on_upsert_call
        self._ids = count(1)
        self._upsert_calls = 0
        for record in existing or []:
            self._save(record)

    def _save(self, record: HealthRecord) -> HealthRecord:
        key = (record.user_id, record.date)
        current = self.rows.get(key)
        saved = HealthRecord.from_row(record.to_row())
        saved.id = current.id if current else next(self._ids)
        self.rows[key] = saved
        return saved

    def list_records(self, user_id):
        self.calls.append(("list_records", user_id))
        records = [r for r in self.rows.values() if r.user_id == user_id]
        return sorted(records, key=lambda r: r.date, reverse=True)

    def get_record(self, user_id, record_id):
        for record in self.rows.values():
            if record.user_id == user_id and record.id == record_id:
                return record
        return None

    def upsert_many(self, records):
        self._upsert_calls += 1
        self.calls.append(("upsert_many", len(records)))
        if self.fail_on_upsert_call == self._upsert_calls:
            raise StoreError("connection reset by peer")
        return [self._save(record) for record in records]

    def delete_one(self, user_id, record_id):
        self.calls.append(("delete_one", record_id))
        for key, record in list(self.rows.items()):
            if record.user_id == user_id and record.id == record_id:
                del self.rows[key]
                return True
        return False

    def delete_many(self, user_id, record_ids):
        self.calls.append(("delete_many", len(record_ids)))
        wanted = set(record_ids)
        for key, record in list(self.rows.items()):
            if record.user_id == user_id and record.id in wanted:
                del self.rows[key]

    def dates_with_records(self, user_id, dates):
        self.calls.append(("dates_with_records", tuple(dates)))
        return sorted({d for (uid, d) in self.rows if uid == user_id and d in set(dates)})

    def call_names(self):
        return [call[0] for call in self.calls]


def make_record(day: str, weight: float = 70.0, user_id=1, **fields) -> HealthRecord:
    return HealthRecord(user_id=user_id, date=day, weight=weight, **fields)
