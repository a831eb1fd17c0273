import logging

import aiohttp.web
import asab

from . import exceptions
from .generic import get_bearer_token_value

#

L = logging.getLogger(__name__)

#


def app_middleware_factory(app):

	@aiohttp.web.middleware
	async def app_middleware(request, handler):
		"""
		Add the application object to the request.
		"""
		request.App = app
		return await handler(request)

	return app_middleware


def auth_middleware_factory(app):
	session_service = app.get_service("jdue.SessionService")

	@aiohttp.web.middleware
	async def auth_middleware(request, handler):
		"""
		Resolve the session from the Bearer token, if there is one.
		Authorization happens in the `access_control` decorator.
		"""
		request.Session = None

		token_value = get_bearer_token_value(request)
		if token_value is not None:
			try:
				request.Session = session_service.get_session(token_value)
			except exceptions.SessionNotFoundError as e:
				L.log(asab.LOG_NOTICE, "Invalid bearer token: {}".format(e))
				return aiohttp.web.HTTPForbidden()

		return await handler(request)

	return auth_middleware
