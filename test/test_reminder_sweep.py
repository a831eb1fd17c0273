import datetime
import unittest
import zoneinfo

import asab.exceptions

from jdue.reminder.sweep import due_notifications, parse_reminder, Reminder, ReminderUnit
from jdue.task.recurrence import parse_due_date, format_due_date


UTC = datetime.timezone.utc


def task(**kwargs):
	obj = {
		"id": "t1",
		"title": "Pay rent",
		"dueDate": "2024-03-10T09:00",
		"isComplete": False,
		"reminders": [],
		"notificationsSent": {},
	}
	obj.update(kwargs)
	return obj


class DueNotificationsTestCase(unittest.TestCase):
	maxDiff = None

	def test_overdue_fires_once(self):
		now = datetime.datetime(2024, 3, 10, 9, 5, tzinfo=UTC)
		t = task()

		pending = due_notifications(t, now)
		self.assertEqual([p.Key for p in pending], ["overdue"])
		self.assertEqual(pending[0].Title, "Task Overdue: Pay rent")
		self.assertEqual(pending[0].Body, "This task is now overdue.")
		self.assertEqual(pending[0].Tag, "t1overdue")

		# Record the key the way the scheduler does
		t["notificationsSent"] = {p.Key: 1710061500000 for p in pending}
		self.assertEqual(due_notifications(t, now), [])
		self.assertEqual(due_notifications(t, now + datetime.timedelta(days=30)), [])


	def test_not_due_yet(self):
		now = datetime.datetime(2024, 3, 10, 8, 59, tzinfo=UTC)
		self.assertEqual(due_notifications(task(), now), [])


	def test_overdue_at_exact_due_time(self):
		now = datetime.datetime(2024, 3, 10, 9, 0, tzinfo=UTC)
		self.assertEqual([p.Key for p in due_notifications(task(), now)], ["overdue"])


	def test_completed_or_undated_tasks_are_skipped(self):
		now = datetime.datetime(2025, 1, 1, tzinfo=UTC)
		self.assertEqual(due_notifications(task(isComplete=True), now), [])
		self.assertEqual(due_notifications(task(dueDate=None), now), [])


	def test_before_reminder(self):
		t = task(reminders=[{"value": 30, "unit": "minutes", "isBefore": True}])

		self.assertEqual(due_notifications(t, datetime.datetime(2024, 3, 10, 8, 29, tzinfo=UTC)), [])

		pending = due_notifications(t, datetime.datetime(2024, 3, 10, 8, 30, tzinfo=UTC))
		self.assertEqual(len(pending), 1)
		self.assertEqual(pending[0].Key, "before-30-minutes")
		self.assertEqual(pending[0].Title, "Reminder: Pay rent")
		self.assertEqual(pending[0].Body, "Due in 30 minutes.")
		self.assertEqual(pending[0].Tag, "t1before-30-minutes")


	def test_after_reminder(self):
		t = task(
			reminders=[{"value": 1, "unit": "days", "isBefore": False}],
			notificationsSent={"overdue": 1},
		)
		self.assertEqual(due_notifications(t, datetime.datetime(2024, 3, 11, 8, 59, tzinfo=UTC)), [])

		pending = due_notifications(t, datetime.datetime(2024, 3, 11, 9, 0, tzinfo=UTC))
		self.assertEqual([p.Key for p in pending], ["after-1-days"])
		self.assertEqual(pending[0].Body, "1 days have passed since the due time.")


	def test_late_sweep_emits_everything_due(self):
		t = task(reminders=[
			{"value": 1, "unit": "days", "isBefore": True},
			{"value": 2, "unit": "hours", "isBefore": True},
			{"value": 2, "unit": "hours", "isBefore": True},
			{"value": 1, "unit": "hours", "isBefore": False},
		])
		pending = due_notifications(t, datetime.datetime(2024, 3, 10, 9, 30, tzinfo=UTC))
		self.assertEqual(
			[p.Key for p in pending],
			["overdue", "before-1-days", "before-2-hours"]
		)


	def test_sent_reminders_are_not_repeated(self):
		t = task(
			reminders=[{"value": 1, "unit": "hours", "isBefore": True}],
			notificationsSent={"before-1-hours": 1},
		)
		pending = due_notifications(t, datetime.datetime(2024, 3, 10, 8, 30, tzinfo=UTC))
		self.assertEqual(pending, [])


	def test_malformed_reminder_is_skipped(self):
		t = task(reminders=[
			{"value": "soon", "unit": "minutes"},
			{"value": 5, "unit": "weeks"},
			{"value": 5, "unit": "minutes", "isBefore": True},
		])
		pending = due_notifications(t, datetime.datetime(2024, 3, 10, 8, 56, tzinfo=UTC))
		self.assertEqual([p.Key for p in pending], ["before-5-minutes"])


	def test_timezone(self):
		prague = zoneinfo.ZoneInfo("Europe/Prague")
		# 09:00 in Prague is 08:00 UTC in March
		now = datetime.datetime(2024, 3, 10, 8, 30, tzinfo=UTC)
		self.assertEqual(due_notifications(task(), now), [])
		self.assertEqual(due_notifications(task(), now, prague)[0].Key, "overdue")


class ReminderTestCase(unittest.TestCase):

	def test_parse(self):
		reminder = parse_reminder({"value": 15, "unit": "minutes", "isBefore": True})
		self.assertEqual(reminder, Reminder(Value=15, Unit=ReminderUnit.MINUTES, IsBefore=True))
		self.assertEqual(reminder.Key, "before-15-minutes")
		self.assertEqual(reminder.Offset, datetime.timedelta(minutes=15))
		self.assertEqual(reminder.serialize(), {"value": 15, "unit": "minutes", "isBefore": True})

		self.assertEqual(parse_reminder({"value": 2, "unit": "days", "isBefore": False}).Key, "after-2-days")


	def test_parse_invalid(self):
		for data in ({"unit": "minutes"}, {"value": 1, "unit": "seconds"}, {"value": None, "unit": "hours"}):
			with self.assertRaises(asab.exceptions.ValidationError):
				parse_reminder(data)


class DaylightSavingTestCase(unittest.TestCase):
	"""
	Reminder offsets are absolute durations even when a clock change lies in between.
	"""

	def setUp(self):
		self.Prague = zoneinfo.ZoneInfo("Europe/Prague")

	def test_day_before_across_spring_forward(self):
		# Clocks move forward on 2024-03-31; 12:00 CEST is 10:00 UTC
		t = task(
			dueDate="2024-03-31T12:00",
			reminders=[{"value": 1, "unit": "days", "isBefore": True}],
		)
		self.assertEqual(due_notifications(t, datetime.datetime(2024, 3, 30, 9, 59, tzinfo=UTC), self.Prague), [])
		pending = due_notifications(t, datetime.datetime(2024, 3, 30, 10, 30, tzinfo=UTC), self.Prague)
		self.assertEqual([p.Key for p in pending], ["before-1-days"])

	def test_hours_after_across_fall_back(self):
		# Clocks move back on 2024-10-27 at 03:00 CEST; 01:00 CEST is 23:00 UTC the day before
		t = task(
			dueDate="2024-10-27T01:00",
			reminders=[{"value": 3, "unit": "hours", "isBefore": False}],
			notificationsSent={"overdue": 1},
		)
		# 02:00 UTC is exactly three hours after the due time
		self.assertEqual(due_notifications(t, datetime.datetime(2024, 10, 27, 1, 59, tzinfo=UTC), self.Prague), [])
		pending = due_notifications(t, datetime.datetime(2024, 10, 27, 2, 0, tzinfo=UTC), self.Prague)
		self.assertEqual([p.Key for p in pending], ["after-3-hours"])

	def test_offset_due_date_is_stored_in_local_time(self):
		# 09:00+01:00 is 08:00 UTC and 09:00 in Prague in winter
		stored = format_due_date(parse_due_date("2024-03-10T09:00+01:00", self.Prague))
		self.assertEqual(stored, "2024-03-10T09:00")

		t = task(dueDate=stored)
		self.assertEqual(due_notifications(t, datetime.datetime(2024, 3, 10, 7, 30, tzinfo=UTC), self.Prague), [])
		pending = due_notifications(t, datetime.datetime(2024, 3, 10, 8, 0, tzinfo=UTC), self.Prague)
		self.assertEqual([p.Key for p in pending], ["overdue"])
