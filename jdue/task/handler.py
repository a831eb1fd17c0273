import logging

import aiohttp.web
import asab.web.rest

from . import schema
from .service import serialize_project, serialize_task
from ..decorators import access_control

#

L = logging.getLogger(__name__)

#


class TaskHandler(object):
	"""
	Projects and tasks of the current user

	---
	tags: ["Tasks"]
	"""

	def __init__(self, app, task_svc):
		self.TaskService = task_svc

		web_app = app.WebContainer.WebApp
		web_app.router.add_get("/api/data", self.get_data)
		web_app.router.add_post("/api/projects", self.create_project)
		web_app.router.add_delete("/api/projects/{project_id}", self.delete_project)
		web_app.router.add_post("/api/tasks", self.create_task)
		web_app.router.add_put("/api/tasks/{task_id}", self.update_task)
		web_app.router.add_delete("/api/tasks/{task_id}", self.delete_task)
		web_app.router.add_post("/api/tasks/{task_id}/toggle", self.toggle_task)
		web_app.router.add_post("/api/tasks/{task_id}/notifications", self.mark_notification)


	@access_control()
	async def get_data(self, request, *, user_id):
		"""
		Get all projects and tasks of the current user
		"""
		projects = await self.TaskService.list_projects(user_id)
		tasks = await self.TaskService.list_tasks(user_id)
		return asab.web.rest.json_response(request, {
			"projects": [serialize_project(p) for p in projects],
			"tasks": [serialize_task(t) for t in tasks],
		})


	@asab.web.rest.json_schema_handler(schema.CREATE_PROJECT)
	@access_control()
	async def create_project(self, request, *, json_data, user_id):
		project = await self.TaskService.create_project(user_id, json_data["name"])
		return asab.web.rest.json_response(request, {"newProject": serialize_project(project)}, status=201)


	@access_control()
	async def delete_project(self, request, *, user_id):
		"""
		Delete a project including its tasks
		"""
		await self.TaskService.delete_project(user_id, request.match_info["project_id"])
		return aiohttp.web.Response(status=204)


	@asab.web.rest.json_schema_handler(schema.CREATE_TASK)
	@access_control()
	async def create_task(self, request, *, json_data, user_id):
		task = await self.TaskService.create_task(user_id, json_data)
		return asab.web.rest.json_response(request, {"savedTask": serialize_task(task)}, status=201)


	@asab.web.rest.json_schema_handler(schema.UPDATE_TASK)
	@access_control()
	async def update_task(self, request, *, json_data, user_id):
		task = await self.TaskService.update_task(user_id, request.match_info["task_id"], json_data)
		return asab.web.rest.json_response(request, {"savedTask": serialize_task(task)})


	@access_control()
	async def delete_task(self, request, *, user_id):
		await self.TaskService.delete_task(user_id, request.match_info["task_id"])
		return aiohttp.web.Response(status=204)


	@access_control()
	async def toggle_task(self, request, *, user_id):
		"""
		Complete or reopen a task

		Completing a recurring task moves its due date to the next occurrence
		and keeps it open.
		"""
		task = await self.TaskService.toggle_task(user_id, request.match_info["task_id"])
		return asab.web.rest.json_response(request, {"updatedTask": serialize_task(task)})


	@asab.web.rest.json_schema_handler(schema.MARK_NOTIFICATION)
	@access_control()
	async def mark_notification(self, request, *, json_data, user_id):
		"""
		Record that a notification of the task was shown by the client
		"""
		task = await self.TaskService.mark_notification_sent(
			user_id, request.match_info["task_id"], json_data["notificationKey"])
		return asab.web.rest.json_response(request, {"updatedTask": serialize_task(task)})
