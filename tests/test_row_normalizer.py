import unittest
from datetime import date, datetime

from healthlog.importer import (
    coerce_date,
    coerce_flag,
    coerce_score,
    coerce_weight,
    normalize_row,
)

TODAY = date(2026, 3, 14)


class WeightCoercionTestCase(unittest.TestCase):
    def test_weight_resolves_from_each_alias(self):
        for key in ("weight", "Weight", "体重", "体重(kg)"):
            with self.subTest(key=key):
                record = normalize_row({key: "72.4", "date": "2024-01-01"}, user_id=1)
                self.assertEqual(record.weight, 72.4)

    def test_first_alias_wins_when_several_are_present(self):
        record = normalize_row({"weight": 70, "Weight": 80, "体重": 90}, user_id=1)
        self.assertEqual(record.weight, 70.0)

    def test_blank_alias_falls_through_to_next(self):
        record = normalize_row({"weight": None, "Weight": "", "体重": 65.5}, user_id=1)
        self.assertEqual(record.weight, 65.5)

    def test_invalid_weights_become_zero(self):
        for raw in (None, 0, -3, "abc", "", True, float("nan")):
            with self.subTest(raw=raw):
                self.assertEqual(coerce_weight(raw), 0.0)

    def test_weight_with_trailing_unit_text(self):
        self.assertEqual(coerce_weight("70.5 kg"), 70.5)


class ScoreAndFlagCoercionTestCase(unittest.TestCase):
    def test_scores_parse_as_integers(self):
        self.assertEqual(coerce_score("7"), 7)
        self.assertEqual(coerce_score(7.9), 7)
        self.assertEqual(coerce_score("8.5"), 8)

    def test_unparseable_score_is_zero(self):
        self.assertEqual(coerce_score("great"), 0)
        self.assertEqual(coerce_score(None), 0)

    def test_scores_are_kept_in_range(self):
        self.assertEqual(coerce_score(15), 10)
        self.assertEqual(coerce_score(-2), 0)

    def test_flag_strings(self):
        self.assertTrue(coerce_flag("是"))
        self.assertTrue(coerce_flag("yes"))
        self.assertTrue(coerce_flag(1))
        self.assertFalse(coerce_flag("否"))
        self.assertFalse(coerce_flag(None))

    def test_defaults_for_missing_fields(self):
        record = normalize_row({"weight": 70}, user_id=5, today=TODAY)
        self.assertEqual(record.user_id, 5)
        self.assertEqual(record.diet_score, 0)
        self.assertEqual(record.sleep_condition, 0)
        self.assertFalse(record.has_bowel_movement)
        self.assertEqual(record.notes, "")
        self.assertIsNone(record.id)

    def test_localized_headers(self):
        row = {
            "日期": "2024-02-03",
            "体重": "68",
            "饮食评分": "6",
            "饮水评分": 7,
            "运动评分": "3",
            "心情评分": 9,
            "睡眠评分": 5,
            "排便情况": "是",
            "备注": "rest day",
        }
        record = normalize_row(row, user_id=1)
        self.assertEqual(record.date, "2024-02-03")
        self.assertEqual(record.weight, 68.0)
        self.assertEqual(
            (record.diet_score, record.water_score, record.exercise_score, record.mood_score, record.sleep_condition),
            (6, 7, 3, 9, 5),
        )
        self.assertTrue(record.has_bowel_movement)
        self.assertEqual(record.notes, "rest day")

    def test_english_title_case_score_headers(self):
        record = normalize_row({"Weight": 70, "Diet Score": 4, "Sleep Score": 8, "Bowel Movement": True}, user_id=1)
        self.assertEqual(record.diet_score, 4)
        self.assertEqual(record.sleep_condition, 8)
        self.assertTrue(record.has_bowel_movement)

    def test_non_mapping_row_yields_invalid_candidate(self):
        record = normalize_row(["not", "a", "row"], user_id=1, today=TODAY)
        self.assertEqual(record.weight, 0.0)
        self.assertEqual(record.date, TODAY.isoformat())


class DateCoercionTestCase(unittest.TestCase):
    def test_iso_string_is_unchanged(self):
        self.assertEqual(coerce_date("2024-01-05", today=TODAY), "2024-01-05")

    def test_date_and_datetime_objects(self):
        self.assertEqual(coerce_date(date(2024, 5, 6), today=TODAY), "2024-05-06")
        self.assertEqual(coerce_date(datetime(2024, 5, 6, 23, 30), today=TODAY), "2024-05-06")

    def test_other_date_strings_are_parsed(self):
        self.assertEqual(coerce_date("2024/01/05", today=TODAY), "2024-01-05")
        self.assertEqual(coerce_date("January 5, 2024", today=TODAY), "2024-01-05")

    def test_iso_string_with_trailing_newline_is_cleaned(self):
        self.assertEqual(coerce_date("2024-01-01\n", today=TODAY), "2024-01-01")
        self.assertEqual(coerce_date(" 2024-01-01 ", today=TODAY), "2024-01-01")

    def test_unparseable_string_falls_back_to_today(self):
        self.assertEqual(coerce_date("not a date", today=TODAY), TODAY.isoformat())

    def test_spreadsheet_serials(self):
        self.assertEqual(coerce_date(1, today=TODAY), "1899-12-31")
        self.assertEqual(coerce_date(45292, today=TODAY), "2024-01-01")
        self.assertEqual(coerce_date(45292.75, today=TODAY), "2024-01-01")

    def test_missing_or_unknown_values_fall_back_to_today(self):
        self.assertEqual(coerce_date(None, today=TODAY), TODAY.isoformat())
        self.assertEqual(coerce_date(True, today=TODAY), TODAY.isoformat())
        self.assertEqual(coerce_date({"y": 2024}, today=TODAY), TODAY.isoformat())

    def test_date_aliases(self):
        self.assertEqual(normalize_row({"Date": 45292, "weight": 1}, user_id=1).date, "2024-01-01")
        self.assertEqual(normalize_row({"日期": "2024-03-01", "weight": 1}, user_id=1).date, "2024-03-01")


if __name__ == "__main__":
    unittest.main()
