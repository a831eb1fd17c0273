import logging

import asab.web.rest

from . import schema
from .service import serialize_user
from ..decorators import access_control

#

L = logging.getLogger(__name__)

#


class UserHandler(object):
	"""
	Current user's account

	---
	tags: ["Account"]
	"""

	def __init__(self, app, user_svc):
		self.UserService = user_svc

		web_app = app.WebContainer.WebApp
		web_app.router.add_get("/api/users/me", self.get_me)
		web_app.router.add_put("/api/users/me", self.update_me)


	@access_control()
	async def get_me(self, request, *, user_id):
		user = await self.UserService.get_user(user_id)
		return asab.web.rest.json_response(request, {"user": serialize_user(user)})


	@asab.web.rest.json_schema_handler(schema.UPDATE_ME)
	@access_control()
	async def update_me(self, request, *, json_data, user_id):
		"""
		Change e-mail address and/or password

		Changing the password requires `currentPassword`.
		"""
		user = await self.UserService.update_own_account(
			user_id,
			email=json_data.get("email"),
			current_password=json_data.get("currentPassword"),
			new_password=json_data.get("newPassword"),
		)
		return asab.web.rest.json_response(request, {"updatedUser": serialize_user(user)})
