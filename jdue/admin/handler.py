import logging

import aiohttp.web
import asab.web.rest

from . import schema
from ..decorators import access_control
from ..user.service import serialize_user

#

L = logging.getLogger(__name__)

#


class AdminHandler(object):
	"""
	User administration

	---
	tags: ["Administration"]
	"""

	def __init__(self, app, admin_svc):
		self.AdminService = admin_svc

		web_app = app.WebContainer.WebApp
		web_app.router.add_get("/api/admin/data", self.get_data)
		web_app.router.add_get("/api/admin/stats", self.get_stats)
		web_app.router.add_post("/api/admin/users", self.create_user)
		web_app.router.add_put("/api/admin/users/{user_id}/status", self.set_status)
		web_app.router.add_delete("/api/admin/users/{user_id}", self.delete_user)


	@access_control(admin=True)
	async def get_data(self, request):
		"""
		Get all users, projects and tasks
		"""
		data = await self.AdminService.get_all_data()
		return asab.web.rest.json_response(request, data)


	@access_control(admin=True)
	async def get_stats(self, request):
		stats = await self.AdminService.get_stats()
		return asab.web.rest.json_response(request, stats)


	@asab.web.rest.json_schema_handler(schema.CREATE_USER)
	@access_control(admin=True)
	async def create_user(self, request, *, json_data):
		"""
		Create a user account with an initial project
		"""
		user = await self.AdminService.create_user(
			json_data["username"],
			json_data["password"],
			email=json_data.get("email"),
			is_admin=json_data.get("isAdmin", False),
		)
		return asab.web.rest.json_response(request, {"newUser": serialize_user(user)}, status=201)


	@asab.web.rest.json_schema_handler(schema.SET_STATUS)
	@access_control(admin=True)
	async def set_status(self, request, *, json_data):
		"""
		Activate, ban or deactivate a user account
		"""
		await self.AdminService.set_status(request.match_info["user_id"], json_data["status"])
		return aiohttp.web.Response(status=204)


	@access_control(admin=True)
	async def delete_user(self, request, *, user_id):
		await self.AdminService.delete_user(user_id, request.match_info["user_id"])
		return aiohttp.web.Response(status=204)
