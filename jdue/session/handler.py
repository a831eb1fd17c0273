import logging

import asab
import asab.web.rest

from . import schema
from .. import exceptions

#

L = logging.getLogger(__name__)

#


class SessionHandler(object):
	"""
	Password login

	---
	tags: ["Authentication"]
	"""

	def __init__(self, app, session_svc):
		self.SessionService = session_svc
		self.UserService = app.get_service("jdue.UserService")

		web_app = app.WebContainer.WebApp
		web_app.router.add_post("/api/auth/login", self.login)
		web_app.router.add_post("/api/auth/forgot-password", self.forgot_password)


	@asab.web.rest.json_schema_handler(schema.LOGIN)
	async def login(self, request, *, json_data):
		"""
		Log in with username (or email) and password
		"""
		ident = json_data.get("email") or json_data.get("username")
		try:
			user = await self.UserService.authenticate_password(ident, json_data["password"])
		except exceptions.InvalidCredentialsError:
			return asab.web.rest.json_response(request, {
				"result": "FAILED",
				"error": "invalid-credentials",
				"message": "Invalid credentials",
			}, status=400)
		except exceptions.AccountInactiveError as e:
			return asab.web.rest.json_response(request, {
				"result": "FAILED",
				"error": "account-inactive",
				"message": str(e),
			}, status=403)

		token = self.SessionService.issue_session(user["_id"], {"admin": bool(user.get("is_admin"))})
		return asab.web.rest.json_response(request, {"token": token})


	@asab.web.rest.json_schema_handler(schema.FORGOT_PASSWORD)
	async def forgot_password(self, request, *, json_data):
		"""
		Request a password reset

		The response does not reveal whether the account exists.
		"""
		L.log(asab.LOG_NOTICE, "Password reset requested", struct_data={"email": json_data["email"]})
		return asab.web.rest.json_response(request, {
			"message": "If an account with that email exists, a reset link has been sent.",
		})
