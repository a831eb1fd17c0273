import logging

import asab
import asab.exceptions

from ..user.service import serialize_user
from ..task.service import serialize_project, serialize_task

#

L = logging.getLogger(__name__)

#


DEFAULT_PROJECT_NAME = "My First Project"


class AdminService(asab.Service):
	"""
	User account administration across all users' data.
	"""

	def __init__(self, app, service_name="jdue.AdminService"):
		super().__init__(app, service_name)
		self.UserService = app.get_service("jdue.UserService")
		self.TaskService = app.get_service("jdue.TaskService")


	async def get_all_data(self) -> dict:
		users = []
		async for user in self.UserService.iterate_users():
			users.append(serialize_user(user))
		projects = await self.TaskService.list_projects()
		tasks = await self.TaskService.list_tasks()
		return {
			"users": users,
			"projects": [serialize_project(p) for p in projects],
			"tasks": [serialize_task(t) for t in tasks],
		}


	async def get_stats(self) -> dict:
		project_count, task_count = await self.TaskService.count()
		return {
			"userCount": await self.UserService.count_users(),
			"projectCount": project_count,
			"taskCount": task_count,
		}


	async def create_user(self, username: str, password: str, email: str = None, is_admin: bool = False) -> dict:
		"""
		Create a user account together with an initial project.
		"""
		user_id = await self.UserService.create_user(username, password, email=email, is_admin=is_admin)
		await self.TaskService.create_project(user_id, DEFAULT_PROJECT_NAME)
		return await self.UserService.get_user(user_id)


	async def set_status(self, user_id: str, status: str):
		await self.UserService.set_status(user_id, status)


	async def delete_user(self, acting_user_id: str, user_id: str):
		"""
		Delete a user with all their projects and tasks.
		Administrators cannot delete their own account.
		"""
		if user_id == acting_user_id:
			raise asab.exceptions.ValidationError("Cannot delete self.")
		# Fail early on unknown users
		await self.UserService.get_user(user_id)
		await self.TaskService.delete_user_data(user_id)
		await self.UserService.delete_user(user_id)
