import asyncio
import datetime
import logging
import zoneinfo

import asab
import asab.exceptions

from .sweep import due_notifications
from ..generic import utcnow
from ..task.service import serialize_task

#

L = logging.getLogger(__name__)

#


class ReminderService(asab.Service):
	"""
	Periodically check the open tasks of all active users and send due reminders
	and overdue notices.

	Each notification key is recorded on the task before the notification is sent,
	so a notification is sent at most once per due date even if delivery fails.
	"""

	def __init__(self, app, service_name="jdue.ReminderService"):
		super().__init__(app, service_name)
		self.UserService = app.get_service("jdue.UserService")
		self.TaskService = app.get_service("jdue.TaskService")
		self.NotificationService = app.get_service("jdue.NotificationService")

		self.Enabled = asab.Config.getboolean("jdue:reminder", "enabled")
		self.Timezone = zoneinfo.ZoneInfo(asab.Config.get("jdue:reminder", "timezone"))
		self.SweepTask = None

		if self.Enabled:
			app.PubSub.subscribe("Application.tick/60!", self._on_tick)


	async def finalize(self, app):
		if self.SweepTask is not None and not self.SweepTask.done():
			self.SweepTask.cancel()
			try:
				await self.SweepTask
			except asyncio.CancelledError:
				pass
		await super().finalize(app)


	def _on_tick(self, event_name):
		if self.SweepTask is not None and not self.SweepTask.done():
			L.info("Previous reminder sweep is still running; skipping.")
			return
		self.SweepTask = asyncio.ensure_future(self.sweep())
		self.SweepTask.add_done_callback(self._on_sweep_done)


	def _on_sweep_done(self, task):
		if task.cancelled():
			return
		e = task.exception()
		if e is not None:
			L.exception("Reminder sweep failed", exc_info=e)


	async def sweep(self, now: datetime.datetime = None) -> int:
		"""
		Check all open tasks against `now` and send what is due.
		Return the number of notifications sent.
		"""
		if now is None:
			now = utcnow()

		sent = 0
		async for user in self.UserService.iterate_active_users():
			async for task in self.TaskService.iterate_open_tasks(user["_id"]):
				try:
					pending = due_notifications(serialize_task(task), now, self.Timezone)
				except asab.exceptions.ValidationError as e:
					L.warning("Cannot evaluate task reminders: {}".format(e), struct_data={"task_id": task["_id"]})
					continue

				if len(pending) == 0:
					continue

				try:
					await self.TaskService.mark_notifications_sent(task, [p.Key for p in pending], sent_at=now)
				except asab.exceptions.Conflict:
					# The task changed since it was read; the next sweep sees the new state
					L.info("Task modified during reminder sweep.", struct_data={"task_id": task["_id"]})
					continue

				for notification in pending:
					await self.NotificationService.notify(
						user, notification.Title, notification.Body, notification.Tag)
					sent += 1

		if sent > 0:
			L.log(asab.LOG_NOTICE, "Reminder sweep finished", struct_data={"sent": sent})
		return sent
