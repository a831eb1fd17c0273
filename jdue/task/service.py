import datetime
import logging
import typing
import uuid
import zoneinfo

import asab
import asab.exceptions

from . import recurrence
from .. import exceptions
from ..events import EventTypes
from ..generic import utcnow

#

L = logging.getLogger(__name__)

#


class Priority:
	LOW = "Low"
	MEDIUM = "Medium"
	HIGH = "High"


class TaskService(asab.Service):
	"""
	Projects and tasks of individual users.

	Task documents (collection "t"):
		uid: owner user ID
		pid: project ID
		title, description, priority, labels
		due: due date as "YYYY-MM-DDTHH:MM" wall-clock time, or None
		done: bool
		rec: recurrence rule (see `recurrence.serialize_recurrence`) or None
		rem: list of reminders `{value, unit, isBefore}`
		ns: mapping of notification key to the time it was sent
	"""

	ProjectCollection = "p"
	TaskCollection = "t"

	def __init__(self, app, service_name="jdue.TaskService"):
		super().__init__(app, service_name)
		self.StorageService = app.get_service("asab.StorageService")
		self.Timezone = zoneinfo.ZoneInfo(asab.Config.get("jdue:reminder", "timezone"))


	# Projects

	async def list_projects(self, user_id: str = None) -> list:
		"""
		List projects of a user, or of all users if `user_id` is None.
		"""
		query = {} if user_id is None else {"uid": user_id}
		collection = await self.StorageService.collection(self.ProjectCollection)
		cursor = collection.find(query)
		cursor.sort("_c", 1)

		projects = []
		async for project in cursor:
			projects.append(project)
		return projects


	async def create_project(self, user_id: str, name: str) -> dict:
		project_id = str(uuid.uuid4())
		upsertor = self.StorageService.upsertor(self.ProjectCollection, obj_id=project_id)
		upsertor.set("uid", user_id)
		upsertor.set("name", name)
		await upsertor.execute(event_type=EventTypes.PROJECT_CREATED)
		L.log(asab.LOG_NOTICE, "Project created", struct_data={"uid": user_id, "project_id": project_id})
		return {"_id": project_id, "uid": user_id, "name": name}


	async def get_project(self, user_id: str, project_id: str) -> dict:
		try:
			project = await self.StorageService.get(self.ProjectCollection, project_id)
		except KeyError:
			raise exceptions.ProjectNotFoundError(project_id)
		if project.get("uid") != user_id:
			raise exceptions.ProjectNotFoundError(project_id)
		return project


	async def delete_project(self, user_id: str, project_id: str):
		"""
		Delete the project together with all its tasks.
		"""
		await self.get_project(user_id, project_id)
		collection = await self.StorageService.collection(self.TaskCollection)
		result = await collection.delete_many({"pid": project_id})
		await self.StorageService.delete(self.ProjectCollection, project_id)
		L.log(asab.LOG_NOTICE, "Project deleted", struct_data={
			"uid": user_id, "project_id": project_id, "tasks": result.deleted_count})


	# Tasks

	async def list_tasks(self, user_id: str = None) -> list:
		"""
		List tasks of a user, or of all users if `user_id` is None.
		"""
		query = {} if user_id is None else {"uid": user_id}
		collection = await self.StorageService.collection(self.TaskCollection)
		cursor = collection.find(query)
		cursor.sort("_c", 1)

		tasks = []
		async for task in cursor:
			tasks.append(task)
		return tasks


	async def iterate_open_tasks(self, user_id: str):
		"""
		Iterate over the user's incomplete tasks with a due date.
		"""
		collection = await self.StorageService.collection(self.TaskCollection)
		async for task in collection.find({"uid": user_id, "done": False, "due": {"$ne": None}}):
			yield task


	async def get_task(self, user_id: str, task_id: str) -> dict:
		try:
			task = await self.StorageService.get(self.TaskCollection, task_id)
		except KeyError:
			raise exceptions.TaskNotFoundError(task_id)
		if task.get("uid") != user_id:
			raise exceptions.TaskNotFoundError(task_id)
		return task


	async def create_task(self, user_id: str, task_data: dict) -> dict:
		project_id = task_data["projectId"]
		await self.get_project(user_id, project_id)

		task_id = str(uuid.uuid4())
		upsertor = self.StorageService.upsertor(self.TaskCollection, obj_id=task_id)
		upsertor.set("uid", user_id)
		upsertor.set("pid", project_id)
		upsertor.set("title", task_data["title"])
		upsertor.set("description", task_data.get("description") or "")
		upsertor.set("priority", task_data.get("priority") or Priority.MEDIUM)
		upsertor.set("labels", list(task_data.get("labels") or []))
		upsertor.set("due", _normalize_due_date(task_data.get("dueDate"), self.Timezone))
		upsertor.set("done", bool(task_data.get("isComplete", False)))
		upsertor.set("rec", _normalize_recurrence(task_data.get("recurrence")))
		upsertor.set("rem", _normalize_reminders(task_data.get("reminders")))
		upsertor.set("ns", {})
		await upsertor.execute(event_type=EventTypes.TASK_CREATED)

		L.log(asab.LOG_NOTICE, "Task created", struct_data={"uid": user_id, "task_id": task_id})
		return await self.get_task(user_id, task_id)


	async def update_task(self, user_id: str, task_id: str, task_data: dict) -> dict:
		"""
		Update task fields present in `task_data`.
		Changing the due date resets the record of sent notifications.
		"""
		task = await self.get_task(user_id, task_id)
		upsertor = self.StorageService.upsertor(self.TaskCollection, obj_id=task_id, version=task["_v"])

		if "projectId" in task_data and task_data["projectId"] != task["pid"]:
			await self.get_project(user_id, task_data["projectId"])
			upsertor.set("pid", task_data["projectId"])
		if "title" in task_data:
			upsertor.set("title", task_data["title"])
		if "description" in task_data:
			upsertor.set("description", task_data["description"] or "")
		if "priority" in task_data:
			upsertor.set("priority", task_data["priority"])
		if "labels" in task_data:
			upsertor.set("labels", list(task_data["labels"] or []))
		if "recurrence" in task_data:
			upsertor.set("rec", _normalize_recurrence(task_data["recurrence"]))
		if "reminders" in task_data:
			upsertor.set("rem", _normalize_reminders(task_data["reminders"]))
		if "dueDate" in task_data:
			due = _normalize_due_date(task_data["dueDate"], self.Timezone)
			if due != task.get("due"):
				upsertor.set("due", due)
				upsertor.set("ns", {})

		await self._execute(upsertor, task_id, EventTypes.TASK_UPDATED)
		return await self.get_task(user_id, task_id)


	async def delete_task(self, user_id: str, task_id: str):
		await self.get_task(user_id, task_id)
		await self.StorageService.delete(self.TaskCollection, task_id)
		L.log(asab.LOG_NOTICE, "Task deleted", struct_data={"uid": user_id, "task_id": task_id})


	async def toggle_task(self, user_id: str, task_id: str) -> dict:
		"""
		Flip the completion state of a task.

		Completing a recurring task with a due date starts its next cycle instead: the due date
		advances, the task stays incomplete and the record of sent notifications is cleared,
		all in one versioned write.
		"""
		task = await self.get_task(user_id, task_id)
		is_complete = not task.get("done", False)
		due = task.get("due")

		upsertor = self.StorageService.upsertor(self.TaskCollection, obj_id=task_id, version=task["_v"])

		rule = None
		if is_complete and due and task.get("rec"):
			try:
				rule = recurrence.load_recurrence(task["rec"])
			except exceptions.RecurrenceMalformed as e:
				L.warning("{}; completing the task without recurrence.".format(e), struct_data={"task_id": task_id})

		if rule is not None:
			next_due = recurrence.next_due_date(recurrence.parse_due_date(due), rule)
			upsertor.set("due", recurrence.format_due_date(next_due))
			upsertor.set("ns", {})
			is_complete = False
			L.info("Recurring task advanced", struct_data={
				"task_id": task_id, "due": recurrence.format_due_date(next_due)})

		upsertor.set("done", is_complete)
		await self._execute(upsertor, task_id, EventTypes.TASK_TOGGLED)
		return await self.get_task(user_id, task_id)


	async def mark_notifications_sent(self, task: dict, keys: typing.Iterable[str], sent_at: datetime.datetime = None):
		"""
		Record notification keys on a task document read earlier.

		The write is conditional on the task not having changed since it was read;
		a concurrently advanced task raises `asab.exceptions.Conflict` and nothing is recorded.
		"""
		if sent_at is None:
			sent_at = utcnow()

		upsertor = self.StorageService.upsertor(self.TaskCollection, obj_id=task["_id"], version=task["_v"])
		for key in keys:
			if len(key) == 0 or "." in key or key.startswith("$"):
				raise asab.exceptions.ValidationError("Invalid notification key: {!r}".format(key))
			upsertor.set("ns.{}".format(key), sent_at)
		await self._execute(upsertor, task["_id"], EventTypes.TASK_NOTIFIED)


	async def mark_notification_sent(self, user_id: str, task_id: str, key: str) -> dict:
		task = await self.get_task(user_id, task_id)
		await self.mark_notifications_sent(task, [key])
		return await self.get_task(user_id, task_id)


	# Administration

	async def count(self) -> typing.Tuple[int, int]:
		"""
		Return the total number of projects and tasks.
		"""
		projects = await self.StorageService.collection(self.ProjectCollection)
		tasks = await self.StorageService.collection(self.TaskCollection)
		return await projects.count_documents({}), await tasks.count_documents({})


	async def delete_user_data(self, user_id: str):
		projects = await self.StorageService.collection(self.ProjectCollection)
		tasks = await self.StorageService.collection(self.TaskCollection)
		deleted_tasks = await tasks.delete_many({"uid": user_id})
		deleted_projects = await projects.delete_many({"uid": user_id})
		L.log(asab.LOG_NOTICE, "User data deleted", struct_data={
			"uid": user_id,
			"projects": deleted_projects.deleted_count,
			"tasks": deleted_tasks.deleted_count,
		})


	async def _execute(self, upsertor, task_id: str, event_type: str):
		try:
			await upsertor.execute(event_type=event_type)
		except KeyError:
			# The version check failed
			raise asab.exceptions.Conflict("Task was modified concurrently.", key="id", value=task_id)


def serialize_project(project: dict) -> dict:
	return {
		"id": project["_id"],
		"name": project.get("name"),
		"userId": project.get("uid"),
	}


def serialize_task(task: dict) -> dict:
	sent = {}
	for key, sent_at in (task.get("ns") or {}).items():
		if isinstance(sent_at, datetime.datetime):
			if sent_at.tzinfo is None:
				sent_at = sent_at.replace(tzinfo=datetime.timezone.utc)
			# Milliseconds since the epoch
			sent_at = int(sent_at.timestamp() * 1000)
		sent[key] = sent_at

	return {
		"id": task["_id"],
		"projectId": task.get("pid"),
		"title": task.get("title"),
		"description": task.get("description") or "",
		"dueDate": task.get("due"),
		"priority": task.get("priority") or Priority.MEDIUM,
		"isComplete": bool(task.get("done")),
		"recurrence": task.get("rec"),
		"reminders": task.get("rem") or [],
		"notificationsSent": sent,
		"labels": task.get("labels") or [],
	}


def _normalize_due_date(value: typing.Optional[str], timezone: datetime.tzinfo) -> typing.Optional[str]:
	return recurrence.format_due_date(recurrence.parse_due_date(value, timezone))


def _normalize_recurrence(data: typing.Optional[dict]) -> typing.Optional[dict]:
	return recurrence.serialize_recurrence(recurrence.parse_recurrence(data))


def _normalize_reminders(data: typing.Optional[list]) -> list:
	from ..reminder.sweep import parse_reminder
	return [parse_reminder(reminder).serialize() for reminder in data or []]
