import logging

import aiohttp.web
import asab
import asab.exceptions
import asab.web.rest
import webauthn.helpers

from . import schema
from .. import exceptions
from ..decorators import access_control
from ..exceptions import RejectReason
from ..user.service import serialize_passkey

#

L = logging.getLogger(__name__)

#


class WebAuthnHandler(object):
	"""
	Passkey registration and login

	---
	tags: ["Passkeys"]
	"""

	def __init__(self, app, webauthn_svc):
		self.WebAuthnService = webauthn_svc
		self.UserService = app.get_service("jdue.UserService")

		web_app = app.WebContainer.WebApp
		web_app.router.add_post("/api/auth/passkey-options", self.get_authentication_options)
		web_app.router.add_post("/api/auth/passkey-login", self.login)
		web_app.router.add_get("/api/users/me/passkeys/options", self.get_registration_options)
		web_app.router.add_post("/api/users/me/passkeys", self.register_passkey)
		web_app.router.add_get("/api/users/me/passkeys", self.list_passkeys)
		web_app.router.add_put("/api/users/me/passkeys/{passkey_id}", self.update_passkey)
		web_app.router.add_delete("/api/users/me/passkeys/{passkey_id}", self.delete_passkey)


	async def get_authentication_options(self, request):
		"""
		Start a passkey login ceremony
		"""
		options = await self.WebAuthnService.get_authentication_options()
		return asab.web.rest.json_response(request, options)


	@asab.web.rest.json_schema_handler(schema.PASSKEY_LOGIN)
	async def login(self, request, *, json_data):
		"""
		Log in with a passkey
		"""
		try:
			token = await self.WebAuthnService.authenticate(json_data["ceremony_id"], json_data["credential"])
		except exceptions.CeremonyRejectedError as e:
			return _rejection_response(request, e)
		except exceptions.AccountInactiveError as e:
			return asab.web.rest.json_response(request, {
				"result": "FAILED",
				"error": "account-inactive",
				"message": str(e),
			}, status=403)
		return asab.web.rest.json_response(request, {"token": token})


	@access_control()
	async def get_registration_options(self, request, *, user_id):
		"""
		Start a passkey registration ceremony for the current user
		"""
		options = await self.WebAuthnService.get_registration_options(user_id)
		return asab.web.rest.json_response(request, options)


	@asab.web.rest.json_schema_handler(schema.REGISTER_PASSKEY)
	@access_control()
	async def register_passkey(self, request, *, json_data, user_id):
		"""
		Register a new passkey for the current user
		"""
		try:
			passkey = await self.WebAuthnService.register_passkey(
				user_id,
				json_data["ceremony_id"],
				json_data["credential"],
				name=json_data.get("name"),
			)
		except exceptions.CeremonyRejectedError as e:
			return _rejection_response(request, e)
		return asab.web.rest.json_response(request, {"passkey": serialize_passkey(passkey)}, status=201)


	@access_control()
	async def list_passkeys(self, request, *, user_id):
		"""
		List the current user's passkeys
		"""
		passkeys = [serialize_passkey(pk) for pk in await self.UserService.list_passkeys(user_id)]
		return asab.web.rest.json_response(request, {
			"data": passkeys,
			"count": len(passkeys),
		})


	@asab.web.rest.json_schema_handler(schema.UPDATE_PASSKEY)
	@access_control()
	async def update_passkey(self, request, *, json_data, user_id):
		"""
		Rename one of the current user's passkeys
		"""
		passkey_id = _parse_passkey_id(request)
		await self.UserService.update_passkey(user_id, passkey_id, name=json_data["name"])
		return asab.web.rest.json_response(request, {"result": "OK"})


	@access_control()
	async def delete_passkey(self, request, *, user_id):
		"""
		Remove one of the current user's passkeys
		"""
		passkey_id = _parse_passkey_id(request)
		await self.UserService.delete_passkey(user_id, passkey_id)
		return aiohttp.web.Response(status=204)


def _parse_passkey_id(request) -> bytes:
	try:
		return webauthn.helpers.base64url_to_bytes(request.match_info["passkey_id"])
	except ValueError:
		raise asab.exceptions.ValidationError("Invalid passkey ID: {!r}".format(request.match_info["passkey_id"]))


_REJECTION_STATUS = {
	RejectReason.CREDENTIAL_NOT_FOUND: 404,
	RejectReason.DUPLICATE_CREDENTIAL: 409,
}


def _rejection_response(request, error: exceptions.CeremonyRejectedError):
	return asab.web.rest.json_response(request, {
		"result": "FAILED",
		"error": str(error.Reason),
		"message": str(error),
	}, status=_REJECTION_STATUS.get(error.Reason, 400))
