import dataclasses
import datetime
import enum
import logging

import asab.exceptions

from ..task.recurrence import parse_due_date

#

L = logging.getLogger(__name__)

#

OVERDUE_KEY = "overdue"


class ReminderUnit(enum.StrEnum):
	MINUTES = "minutes"
	HOURS = "hours"
	DAYS = "days"


UNIT_MILLISECONDS = {
	ReminderUnit.MINUTES: 60000,
	ReminderUnit.HOURS: 3600000,
	ReminderUnit.DAYS: 86400000,
}


@dataclasses.dataclass(frozen=True)
class Reminder:
	Value: int
	Unit: ReminderUnit
	IsBefore: bool

	@property
	def Key(self) -> str:
		return "{}-{}-{}".format("before" if self.IsBefore else "after", self.Value, self.Unit.value)

	@property
	def Offset(self) -> datetime.timedelta:
		return datetime.timedelta(milliseconds=self.Value * UNIT_MILLISECONDS[self.Unit])

	def fire_time(self, due_date: datetime.datetime) -> datetime.datetime:
		if self.IsBefore:
			return due_date - self.Offset
		return due_date + self.Offset

	def message(self, title: str) -> tuple[str, str]:
		if self.IsBefore:
			body = "Due in {} {}.".format(self.Value, self.Unit.value)
		else:
			body = "{} {} have passed since the due time.".format(self.Value, self.Unit.value)
		return "Reminder: {}".format(title), body

	def serialize(self) -> dict:
		return {"value": self.Value, "unit": self.Unit.value, "isBefore": self.IsBefore}


@dataclasses.dataclass(frozen=True)
class PendingNotification:
	TaskId: str
	Key: str
	Title: str
	Body: str

	@property
	def Tag(self) -> str:
		# Lets the receiving side collapse duplicates from independent schedulers
		return "{}{}".format(self.TaskId, self.Key)


def parse_reminder(data: dict) -> Reminder:
	try:
		return Reminder(
			Value=int(data["value"]),
			Unit=ReminderUnit(data["unit"]),
			IsBefore=bool(data.get("isBefore", True)),
		)
	except (KeyError, ValueError, TypeError) as e:
		raise asab.exceptions.ValidationError("Invalid reminder: {!r}".format(data)) from e


def due_notifications(
	task: dict,
	now: datetime.datetime,
	timezone: datetime.tzinfo = datetime.timezone.utc,
) -> list[PendingNotification]:
	"""
	Decide which notifications of a task should fire at `now`.

	`task` is the REST representation of a task (`id`, `title`, `dueDate`, `isComplete`,
	`reminders`, `notificationsSent`). Due dates are wall-clock times in `timezone`.
	Keys already present in `notificationsSent` never fire again; recording the returned keys
	is up to the caller.
	"""
	if task.get("isComplete") or not task.get("dueDate"):
		return []

	# Offsets are absolute durations, so the arithmetic runs in UTC
	due_date = parse_due_date(task["dueDate"]).replace(tzinfo=timezone).astimezone(datetime.timezone.utc)
	sent = task.get("notificationsSent") or {}
	pending = []
	fired = set()

	if now >= due_date and OVERDUE_KEY not in sent:
		pending.append(PendingNotification(
			TaskId=task["id"],
			Key=OVERDUE_KEY,
			Title="Task Overdue: {}".format(task["title"]),
			Body="This task is now overdue.",
		))

	for reminder_data in task.get("reminders") or []:
		try:
			reminder = parse_reminder(reminder_data)
		except asab.exceptions.ValidationError:
			L.warning("Skipping malformed reminder.", struct_data={"task_id": task["id"]})
			continue

		if reminder.Key in sent or reminder.Key in fired:
			continue
		if now < reminder.fire_time(due_date):
			continue

		fired.add(reminder.Key)
		title, body = reminder.message(task["title"])
		pending.append(PendingNotification(TaskId=task["id"], Key=reminder.Key, Title=title, Body=body))

	return pending
