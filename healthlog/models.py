from dataclasses import dataclass, field
from datetime import date, datetime

from healthlog import db

SCORE_FIELDS = (
    "diet_score",
    "water_score",
    "exercise_score",
    "mood_score",
    "sleep_condition",
)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=True)
    password_hash = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    daily_records = db.relationship("DailyRecord", backref="user", lazy=True)


class DailyRecord(db.Model):
    __tablename__ = "daily_records"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    date = db.Column(db.Date, default=date.today, index=True, nullable=False)

    weight = db.Column(db.Float, nullable=False)  # kg
    diet_score = db.Column(db.Integer, nullable=True)  # 0-10
    water_score = db.Column(db.Integer, nullable=True)  # 0-10
    exercise_score = db.Column(db.Integer, nullable=True)  # 0-10
    mood_score = db.Column(db.Integer, nullable=True)  # 0-10
    sleep_condition = db.Column(db.Integer, nullable=True)  # 0-10
    has_bowel_movement = db.Column(db.Boolean, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (db.UniqueConstraint("user_id", "date", name="uq_daily_record_user_date"),)


@dataclass
class HealthRecord:
    """One day of tracking data for one user, independent of the backing store."""

    user_id: int | str
    date: str
    weight: float
    diet_score: int | None = None
    water_score: int | None = None
    exercise_score: int | None = None
    mood_score: int | None = None
    sleep_condition: int | None = None
    has_bowel_movement: bool | None = None
    notes: str | None = None
    id: int | str | None = field(default=None)

    def to_row(self) -> dict:
        row = {
            "user_id": self.user_id,
            "date": self.date,
            "weight": self.weight,
            "diet_score": self.diet_score,
            "water_score": self.water_score,
            "exercise_score": self.exercise_score,
            "mood_score": self.mood_score,
            "sleep_condition": self.sleep_condition,
            "has_bowel_movement": self.has_bowel_movement,
            "notes": self.notes,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: dict) -> "HealthRecord":
        raw_date = row.get("date")
        if isinstance(raw_date, (date, datetime)):
            raw_date = raw_date.strftime("%Y-%m-%d")
        weight = row.get("weight")
        return cls(
            id=row.get("id"),
            user_id=row.get("user_id"),
            date=str(raw_date) if raw_date is not None else "",
            weight=float(weight) if weight is not None else 0.0,
            diet_score=row.get("diet_score"),
            water_score=row.get("water_score"),
            exercise_score=row.get("exercise_score"),
            mood_score=row.get("mood_score"),
            sleep_condition=row.get("sleep_condition"),
            has_bowel_movement=row.get("has_bowel_movement"),
            notes=row.get("notes"),
        )

    @classmethod
    def from_model(cls, model: DailyRecord) -> "HealthRecord":
        return cls(
            id=model.id,
            user_id=model.user_id,
            date=model.date.isoformat(),
            weight=model.weight,
            diet_score=model.diet_score,
            water_score=model.water_score,
            exercise_score=model.exercise_score,
            mood_score=model.mood_score,
            sleep_condition=model.sleep_condition,
            has_bowel_movement=model.has_bowel_movement,
            notes=model.notes,
        )

    @property
    def day(self) -> date:
        return date.fromisoformat(self.date)
