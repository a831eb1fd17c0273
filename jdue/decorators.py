import logging
import functools
import inspect

import aiohttp.web
import asab

from . import exceptions

#

L = logging.getLogger(__name__)

#


def access_control(admin=False):
	"""
	Authenticate the request and optionally require administrator rights.

	The session owner must still exist and be active, so that banning a user
	takes effect before their session token expires.
	If the decorated function has a `user_id` keyword-only argument, the ID of the
	session owner is passed in it.

		```
		web_app.router.add_get("/api/data", self.get_data)

		@access_control()
		async def get_data(self, request, *, user_id):
			...
		```
	"""

	def decorator(handler):

		handler_argspecs = inspect.getfullargspec(handler)
		pass_user_id = "user_id" in handler_argspecs.kwonlyargs

		@functools.wraps(handler)
		async def wrapper(*args, **kwargs):
			request = args[-1]

			if request.Session is None:
				L.log(asab.LOG_NOTICE, "Unauthorized access: Authentication required")
				return aiohttp.web.HTTPUnauthorized()

			user_service = request.App.get_service("jdue.UserService")
			try:
				user = await user_service.get_user(request.Session.UserId)
			except exceptions.UserNotFoundError:
				L.log(asab.LOG_NOTICE, "Unauthorized access: Session user no longer exists", struct_data={
					"uid": request.Session.UserId})
				return aiohttp.web.HTTPUnauthorized()

			status = user.get("status")
			if status != "active":
				L.log(asab.LOG_NOTICE, "Unauthorized access: Account is not active", struct_data={
					"uid": request.Session.UserId, "status": status})
				return aiohttp.web.HTTPForbidden()

			if admin and not user.get("is_admin"):
				L.log(asab.LOG_NOTICE, "Unauthorized access: Admin access required", struct_data={
					"uid": request.Session.UserId})
				return aiohttp.web.HTTPForbidden()

			if pass_user_id:
				kwargs["user_id"] = request.Session.UserId

			return await handler(*args, **kwargs)

		return wrapper

	return decorator
