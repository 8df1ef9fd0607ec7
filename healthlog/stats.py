from dataclasses import dataclass
from datetime import date, timedelta
from typing import Mapping, Sequence

from healthlog.models import SCORE_FIELDS, HealthRecord

SCORE_CHART_LABELS = {
    "diet_score": "Diet",
    "water_score": "Water",
    "exercise_score": "Exercise",
    "mood_score": "Mood",
    "sleep_condition": "Sleep",
}


def average_or_zero(values: list[float], digits: int = 1):
    cleaned = [float(v) for v in values if v is not None]
    if not cleaned:
        return 0
    return round(sum(cleaned) / len(cleaned), digits)


def build_dashboard(records: Sequence[HealthRecord]) -> dict | None:
    """Summary numbers and chart series for a newest-first list of records."""
    if not records:
        return None

    current_weight = records[0].weight
    start_weight = records[-1].weight
    flags = [r.has_bowel_movement for r in records if r.has_bowel_movement is not None]
    bowel_percentage = round(len([f for f in flags if f]) / len(flags) * 100) if flags else 0

    stats = {
        "current_weight": current_weight,
        "start_weight": start_weight,
        "weight_lost": round(start_weight - current_weight, 1),
        "average_weight": average_or_zero([r.weight for r in records]),
        "bowel_percentage": bowel_percentage,
        "record_count": len(records),
    }
    for field_name in SCORE_FIELDS:
        stats[f"avg_{field_name}"] = average_or_zero([getattr(r, field_name) for r in records])

    chronological = list(reversed(records))
    stats["weight_series"] = [{"date": r.date, "weight": r.weight} for r in chronological]
    stats["score_series"] = [
        {
            "date": r.date,
            **{label: getattr(r, field_name) or 0 for field_name, label in SCORE_CHART_LABELS.items()},
        }
        for r in chronological
    ]
    return stats


def weight_change(records: Sequence[HealthRecord], index: int) -> dict | None:
    if index >= len(records) - 1:
        return None
    change = records[index].weight - records[index + 1].weight
    return {"value": round(change, 1), "is_gain": change > 0}


def _format_number(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return format(value, "g")
    return str(value)


@dataclass
class HistoryQuery:
    search: str
    start_date: date
    end_date: date

    @classmethod
    def from_args(cls, args: Mapping, today: date, default_days: int = 30) -> tuple["HistoryQuery", list[str]]:
        """Build the history filter from query-string args.

        Returns the query plus messages for any argument that had to fall
        back to its default.
        """
        problems = []
        start = today - timedelta(days=default_days)
        end = today

        raw_start = (args.get("start") or "").strip()
        raw_end = (args.get("end") or "").strip()
        if raw_start:
            try:
                start = date.fromisoformat(raw_start)
            except ValueError:
                problems.append("Invalid start date. Showing the default range.")
        if raw_end:
            try:
                end = date.fromisoformat(raw_end)
            except ValueError:
                problems.append("Invalid end date. Showing the default range.")

        return cls(search=(args.get("q") or "").strip(), start_date=start, end_date=end), problems

    def as_args(self) -> dict:
        return {
            "q": self.search,
            "start": self.start_date.isoformat(),
            "end": self.end_date.isoformat(),
        }


def record_matches(record: HealthRecord, term: str) -> bool:
    if not term:
        return True
    term_lower = term.lower()
    haystack = [record.date, _format_number(record.weight)]
    haystack.extend(_format_number(getattr(record, field_name)) for field_name in SCORE_FIELDS)
    if any(term in value for value in haystack):
        return True
    return term_lower in (record.notes or "").lower()


def _record_day(record: HealthRecord) -> date | None:
    try:
        return record.day
    except (TypeError, ValueError):
        return None


def filter_records(records: Sequence[HealthRecord], query: HistoryQuery) -> list[HealthRecord]:
    matched = []
    for record in records:
        day = _record_day(record)
        # rows without a readable date cannot fall inside any range
        if day is None:
            continue
        if record_matches(record, query.search) and query.start_date <= day <= query.end_date:
            matched.append(record)
    return matched
