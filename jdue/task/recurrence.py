import dataclasses
import datetime
import enum
import logging
import typing

import asab.exceptions

from .. import exceptions

#

L = logging.getLogger(__name__)

#

DUE_DATE_FORMAT = "%Y-%m-%dT%H:%M"


class RecurrenceType(enum.StrEnum):
	DAILY = "daily"
	WEEKLY = "weekly"
	MONTHLY = "monthly"
	YEARLY = "yearly"


@dataclasses.dataclass(frozen=True)
class DailyRule:
	Type: typing.ClassVar[RecurrenceType] = RecurrenceType.DAILY


@dataclasses.dataclass(frozen=True)
class WeeklyRule:
	Type: typing.ClassVar[RecurrenceType] = RecurrenceType.WEEKLY
	# Weekday indices, 0 = Sunday .. 6 = Saturday
	DaysOfWeek: frozenset = frozenset()


@dataclasses.dataclass(frozen=True)
class MonthlyRule:
	Type: typing.ClassVar[RecurrenceType] = RecurrenceType.MONTHLY


@dataclasses.dataclass(frozen=True)
class YearlyRule:
	Type: typing.ClassVar[RecurrenceType] = RecurrenceType.YEARLY
	Interval: int = 1


RecurrenceRule = DailyRule | WeeklyRule | MonthlyRule | YearlyRule


def parse_recurrence(data: dict | None) -> RecurrenceRule | None:
	"""
	Build a recurrence rule from its JSON representation, e.g.
	`{"type": "weekly", "daysOfWeek": [1, 3, 5]}` or `{"type": "yearly", "yearlyInterval": 2}`.

	Fields irrelevant to the rule type are ignored.
	Raises `asab.exceptions.ValidationError` for unknown types.
	"""
	if data is None:
		return None

	try:
		rtype = RecurrenceType(data.get("type"))
	except ValueError:
		raise asab.exceptions.ValidationError("Unknown recurrence type: {!r}".format(data.get("type")))

	if rtype == RecurrenceType.DAILY:
		return DailyRule()
	if rtype == RecurrenceType.WEEKLY:
		return WeeklyRule(DaysOfWeek=frozenset(data.get("daysOfWeek") or []))
	if rtype == RecurrenceType.MONTHLY:
		return MonthlyRule()
	return YearlyRule(Interval=data.get("yearlyInterval") or 1)


def load_recurrence(data: dict | None) -> RecurrenceRule | None:
	"""
	Build a recurrence rule from a stored task document.
	Raises `RecurrenceMalformed` when the stored value cannot be interpreted.
	"""
	try:
		return parse_recurrence(data)
	except (asab.exceptions.ValidationError, AttributeError, TypeError) as e:
		raise exceptions.RecurrenceMalformed("Cannot interpret stored recurrence: {!r}".format(data)) from e


def serialize_recurrence(rule: RecurrenceRule | None) -> dict | None:
	if rule is None:
		return None
	if isinstance(rule, WeeklyRule):
		return {"type": rule.Type.value, "daysOfWeek": sorted(rule.DaysOfWeek)}
	if isinstance(rule, YearlyRule):
		return {"type": rule.Type.value, "yearlyInterval": rule.Interval}
	return {"type": rule.Type.value}


def next_due_date(current: datetime.datetime, rule: RecurrenceRule) -> datetime.datetime:
	"""
	Compute the due date of the next cycle of a recurring task.

	The computation works on wall-clock time: time of day is preserved and the result
	is truncated to whole minutes. Malformed rules (weekly with no valid weekday, yearly with
	a non-positive interval) fall back to one week and one year respectively.
	"""
	if isinstance(rule, DailyRule):
		nxt = current + datetime.timedelta(days=1)

	elif isinstance(rule, WeeklyRule):
		nxt = current + datetime.timedelta(days=_days_to_next_weekday(current, rule.DaysOfWeek))

	elif isinstance(rule, MonthlyRule):
		nxt = _shift_months(current, 1)

	elif isinstance(rule, YearlyRule):
		interval = rule.Interval
		if not isinstance(interval, int) or interval < 1:
			L.warning("Malformed yearly recurrence; falling back to one year.", struct_data={
				"interval": interval})
			interval = 1
		nxt = _shift_months(current, 12 * interval)

	else:
		raise TypeError("Not a recurrence rule: {!r}".format(rule))

	return nxt.replace(second=0, microsecond=0)


def parse_due_date(
	value: str | None,
	timezone: datetime.tzinfo = datetime.timezone.utc,
) -> datetime.datetime | None:
	"""
	Parse a stored or submitted due date into naive wall-clock time.
	Offset-aware values are first converted to `timezone`, the zone in which stored due dates
	are interpreted.
	"""
	if value is None or value == "":
		return None
	try:
		dt = datetime.datetime.fromisoformat(value)
	except ValueError:
		raise asab.exceptions.ValidationError("Invalid due date: {!r}".format(value))
	if dt.tzinfo is not None:
		dt = dt.astimezone(timezone).replace(tzinfo=None)
	return dt


def format_due_date(value: datetime.datetime | None) -> str | None:
	if value is None:
		return None
	return value.strftime(DUE_DATE_FORMAT)


def sunday_based_weekday(value: datetime.datetime) -> int:
	return value.isoweekday() % 7


def _days_to_next_weekday(current: datetime.datetime, days_of_week: frozenset) -> int:
	days = sorted(d for d in days_of_week if isinstance(d, int) and 0 <= d <= 6)
	if len(days) == 0:
		if len(days_of_week) > 0:
			L.warning("Malformed weekly recurrence; falling back to one week.", struct_data={
				"days": " ".join(str(d) for d in days_of_week)})
		return 7

	today = sunday_based_weekday(current)
	for day in days:
		if day > today:
			return day - today

	# Wrap around to the first selected day of the following week
	return (7 - today) + days[0]


def _shift_months(value: datetime.datetime, months: int) -> datetime.datetime:
	# Day-of-month overflow rolls into the following month (Jan 31 + 1 month = Mar 2/3)
	month_index = value.month - 1 + months
	first = value.replace(year=value.year + month_index // 12, month=month_index % 12 + 1, day=1)
	return first + datetime.timedelta(days=value.day - 1)
