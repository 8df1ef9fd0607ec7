import unittest
from datetime import date

from support import make_record

from healthlog.ai import summarize_stats
from healthlog.stats import HistoryQuery, build_dashboard, filter_records, weight_change


class DashboardTestCase(unittest.TestCase):
    def setUp(self):
        # newest first, as the store returns them
        self.records = [
            make_record("2024-01-03", weight=68.0, diet_score=8, mood_score=None, has_bowel_movement=True),
            make_record("2024-01-02", weight=69.0, diet_score=6, mood_score=7, has_bowel_movement=False),
            make_record("2024-01-01", weight=70.5, diet_score=None, mood_score=9, has_bowel_movement=True),
        ]

    def test_weight_summary(self):
        stats = build_dashboard(self.records)
        self.assertEqual(stats["current_weight"], 68.0)
        self.assertEqual(stats["start_weight"], 70.5)
        self.assertEqual(stats["weight_lost"], 2.5)
        self.assertEqual(stats["average_weight"], 69.2)

    def test_score_averages_ignore_missing_values(self):
        stats = build_dashboard(self.records)
        self.assertEqual(stats["avg_diet_score"], 7.0)
        self.assertEqual(stats["avg_mood_score"], 8.0)
        self.assertEqual(stats["avg_water_score"], 0)
        self.assertEqual(stats["bowel_percentage"], 67)

    def test_chart_series_are_chronological(self):
        stats = build_dashboard(self.records)
        self.assertEqual([p["date"] for p in stats["weight_series"]], ["2024-01-01", "2024-01-02", "2024-01-03"])
        self.assertEqual(stats["score_series"][0]["Diet"], 0)

    def test_empty_records(self):
        self.assertIsNone(build_dashboard([]))
        self.assertEqual(summarize_stats(None), "No records have been logged yet.")

    def test_summary_text_mentions_weights(self):
        text = summarize_stats(build_dashboard(self.records))
        self.assertIn("Current weight: 68.0 kg", text)
        self.assertIn("Days with a bowel movement: 67%", text)

    def test_weight_change_against_previous_day(self):
        self.assertEqual(weight_change(self.records, 0), {"value": -1.0, "is_gain": False})
        self.assertEqual(weight_change(self.records, 1), {"value": -1.5, "is_gain": False})
        self.assertIsNone(weight_change(self.records, 2))


class HistoryFilterTestCase(unittest.TestCase):
    def setUp(self):
        self.records = [
            make_record("2024-02-10", weight=68.4, notes="Long RUN"),
            make_record("2024-01-20", weight=70.0, sleep_condition=9),
            make_record("2023-12-01", weight=71.0),
        ]
        self.wide = HistoryQuery(search="", start_date=date(2023, 1, 1), end_date=date(2024, 12, 31))

    def _search(self, term):
        query = HistoryQuery(search=term, start_date=self.wide.start_date, end_date=self.wide.end_date)
        return [r.date for r in filter_records(self.records, query)]

    def test_search_matches_notes_case_insensitively(self):
        self.assertEqual(self._search("run"), ["2024-02-10"])

    def test_search_matches_weight_date_and_scores(self):
        self.assertEqual(self._search("68.4"), ["2024-02-10"])
        self.assertEqual(self._search("2023-12"), ["2023-12-01"])
        self.assertEqual(self._search("70"), ["2024-01-20"])
        self.assertEqual(self._search("9"), ["2024-01-20"])

    def test_date_range_is_inclusive(self):
        query = HistoryQuery(search="", start_date=date(2024, 1, 20), end_date=date(2024, 2, 10))
        self.assertEqual([r.date for r in filter_records(self.records, query)], ["2024-02-10", "2024-01-20"])

    def test_rows_with_unreadable_dates_are_left_out(self):
        records = self.records + [make_record("", weight=72.0), make_record("soon", weight=73.0)]
        self.assertEqual([r.date for r in filter_records(records, self.wide)], ["2024-02-10", "2024-01-20", "2023-12-01"])

    def test_query_defaults_to_last_month(self):
        query, problems = HistoryQuery.from_args({}, date(2024, 3, 31), default_days=30)
        self.assertEqual(query.start_date, date(2024, 3, 1))
        self.assertEqual(query.end_date, date(2024, 3, 31))
        self.assertEqual(problems, [])

    def test_invalid_range_args_fall_back(self):
        query, problems = HistoryQuery.from_args({"start": "yesterday", "q": " run "}, date(2024, 3, 31))
        self.assertEqual(query.start_date, date(2024, 3, 1))
        self.assertEqual(query.search, "run")
        self.assertEqual(len(problems), 1)


if __name__ == "__main__":
    unittest.main()
