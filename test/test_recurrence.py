import datetime
import unittest
import zoneinfo

import asab.exceptions

from jdue import exceptions
from jdue.task.recurrence import (
	DailyRule, WeeklyRule, MonthlyRule, YearlyRule,
	next_due_date, parse_recurrence, load_recurrence, serialize_recurrence,
	parse_due_date, format_due_date, sunday_based_weekday,
)


def dt(*args):
	return datetime.datetime(*args)


class NextDueDateTestCase(unittest.TestCase):
	maxDiff = None

	def test_daily(self):
		self.assertEqual(next_due_date(dt(2024, 3, 10, 9, 0), DailyRule()), dt(2024, 3, 11, 9, 0))
		# Month and year boundaries
		self.assertEqual(next_due_date(dt(2024, 12, 31, 23, 30), DailyRule()), dt(2025, 1, 1, 23, 30))


	def test_weekly_same_week(self):
		current = dt(2024, 3, 13, 8, 0)
		self.assertEqual(sunday_based_weekday(current), 3)
		rule = WeeklyRule(DaysOfWeek=frozenset({1, 3, 5}))
		self.assertEqual(next_due_date(current, rule), dt(2024, 3, 15, 8, 0))


	def test_weekly_wrap_to_next_week(self):
		friday = dt(2024, 3, 15, 8, 0)
		self.assertEqual(sunday_based_weekday(friday), 5)
		rule = WeeklyRule(DaysOfWeek=frozenset({1, 3}))
		self.assertEqual(next_due_date(friday, rule), dt(2024, 3, 18, 8, 0))


	def test_weekly_single_day_is_one_week(self):
		wednesday = dt(2024, 3, 13, 8, 0)
		rule = WeeklyRule(DaysOfWeek=frozenset({3}))
		self.assertEqual(next_due_date(wednesday, rule), dt(2024, 3, 20, 8, 0))


	def test_weekly_sunday_and_saturday(self):
		saturday = dt(2024, 3, 16, 7, 0)
		self.assertEqual(next_due_date(saturday, WeeklyRule(DaysOfWeek=frozenset({0}))), dt(2024, 3, 17, 7, 0))
		sunday = dt(2024, 3, 17, 7, 0)
		self.assertEqual(next_due_date(sunday, WeeklyRule(DaysOfWeek=frozenset({6}))), dt(2024, 3, 23, 7, 0))


	def test_weekly_forward_progress(self):
		start = dt(2024, 1, 1, 12, 0)
		rules = [
			WeeklyRule(DaysOfWeek=frozenset({0})),
			WeeklyRule(DaysOfWeek=frozenset({1, 3, 5})),
			WeeklyRule(DaysOfWeek=frozenset({6})),
			WeeklyRule(DaysOfWeek=frozenset(range(7))),
		]
		for rule in rules:
			for offset in range(14):
				current = start + datetime.timedelta(days=offset)
				nxt = next_due_date(current, rule)
				self.assertGreater(nxt, current)
				self.assertLessEqual(nxt - current, datetime.timedelta(days=7))
				self.assertIn(sunday_based_weekday(nxt), rule.DaysOfWeek)


	def test_weekly_empty_falls_back_to_one_week(self):
		current = dt(2024, 3, 13, 8, 0)
		self.assertEqual(next_due_date(current, WeeklyRule()), dt(2024, 3, 20, 8, 0))
		# Out-of-range days only
		self.assertEqual(next_due_date(current, WeeklyRule(DaysOfWeek=frozenset({7, -1}))), dt(2024, 3, 20, 8, 0))


	def test_monthly(self):
		self.assertEqual(next_due_date(dt(2024, 3, 10, 9, 0), MonthlyRule()), dt(2024, 4, 10, 9, 0))
		self.assertEqual(next_due_date(dt(2024, 12, 5, 9, 0), MonthlyRule()), dt(2025, 1, 5, 9, 0))


	def test_monthly_overflow(self):
		# Day-of-month overflow rolls into the following month
		self.assertEqual(next_due_date(dt(2024, 1, 31, 9, 0), MonthlyRule()), dt(2024, 3, 2, 9, 0))
		self.assertEqual(next_due_date(dt(2023, 1, 31, 9, 0), MonthlyRule()), dt(2023, 3, 3, 9, 0))
		self.assertEqual(next_due_date(dt(2024, 3, 31, 9, 0), MonthlyRule()), dt(2024, 5, 1, 9, 0))


	def test_yearly(self):
		self.assertEqual(next_due_date(dt(2024, 6, 1, 0, 0), YearlyRule(Interval=2)), dt(2026, 6, 1, 0, 0))
		self.assertEqual(next_due_date(dt(2024, 6, 1, 10, 15), YearlyRule()), dt(2025, 6, 1, 10, 15))


	def test_yearly_leap_day(self):
		self.assertEqual(next_due_date(dt(2024, 2, 29, 9, 0), YearlyRule()), dt(2025, 3, 1, 9, 0))
		self.assertEqual(next_due_date(dt(2024, 2, 29, 9, 0), YearlyRule(Interval=4)), dt(2028, 2, 29, 9, 0))


	def test_yearly_non_positive_interval_falls_back(self):
		self.assertEqual(next_due_date(dt(2024, 6, 1, 0, 0), YearlyRule(Interval=0)), dt(2025, 6, 1, 0, 0))
		self.assertEqual(next_due_date(dt(2024, 6, 1, 0, 0), YearlyRule(Interval=-3)), dt(2025, 6, 1, 0, 0))


	def test_seconds_are_truncated(self):
		self.assertEqual(
			next_due_date(dt(2024, 3, 10, 9, 0, 45, 123000), DailyRule()),
			dt(2024, 3, 11, 9, 0)
		)


	def test_determinism(self):
		current = dt(2024, 3, 13, 8, 0)
		for rule in (DailyRule(), WeeklyRule(DaysOfWeek=frozenset({2, 4})), MonthlyRule(), YearlyRule(Interval=3)):
			self.assertEqual(next_due_date(current, rule), next_due_date(current, rule))


class RecurrenceParsingTestCase(unittest.TestCase):

	def test_parse(self):
		self.assertIsNone(parse_recurrence(None))
		self.assertEqual(parse_recurrence({"type": "daily"}), DailyRule())
		self.assertEqual(
			parse_recurrence({"type": "weekly", "daysOfWeek": [1, 3, 5]}),
			WeeklyRule(DaysOfWeek=frozenset({1, 3, 5}))
		)
		self.assertEqual(parse_recurrence({"type": "monthly"}), MonthlyRule())
		self.assertEqual(parse_recurrence({"type": "yearly", "yearlyInterval": 2}), YearlyRule(Interval=2))
		# Irrelevant fields are ignored
		self.assertEqual(parse_recurrence({"type": "daily", "daysOfWeek": [1]}), DailyRule())


	def test_parse_unknown_type(self):
		with self.assertRaises(asab.exceptions.ValidationError):
			parse_recurrence({"type": "hourly"})


	def test_load_malformed(self):
		with self.assertRaises(exceptions.RecurrenceMalformed):
			load_recurrence({"type": "fortnightly"})
		with self.assertRaises(exceptions.RecurrenceMalformed):
			load_recurrence("daily")


	def test_serialize(self):
		self.assertIsNone(serialize_recurrence(None))
		self.assertEqual(
			serialize_recurrence(WeeklyRule(DaysOfWeek=frozenset({5, 1}))),
			{"type": "weekly", "daysOfWeek": [1, 5]}
		)
		self.assertEqual(serialize_recurrence(YearlyRule(Interval=2)), {"type": "yearly", "yearlyInterval": 2})
		self.assertEqual(serialize_recurrence(MonthlyRule()), {"type": "monthly"})


	def test_due_date(self):
		self.assertIsNone(parse_due_date(None))
		self.assertIsNone(parse_due_date(""))
		self.assertEqual(parse_due_date("2024-03-10T09:00"), dt(2024, 3, 10, 9, 0))
		self.assertEqual(parse_due_date("2024-03-10T09:00:00+02:00"), dt(2024, 3, 10, 7, 0))
		self.assertEqual(format_due_date(dt(2024, 3, 10, 9, 0, 30)), "2024-03-10T09:00")
		with self.assertRaises(asab.exceptions.ValidationError):
			parse_due_date("tomorrow")


	def test_due_date_with_offset_into_local_time(self):
		prague = zoneinfo.ZoneInfo("Europe/Prague")
		self.assertEqual(parse_due_date("2024-03-10T09:00+01:00", prague), dt(2024, 3, 10, 9, 0))
		self.assertEqual(parse_due_date("2024-07-10T07:00Z", prague), dt(2024, 7, 10, 9, 0))
		# Naive values are already wall-clock time
		self.assertEqual(parse_due_date("2024-07-10T07:00", prague), dt(2024, 7, 10, 7, 0))
