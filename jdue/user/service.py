import logging
import re
import typing

import asab
import asab.exceptions
import webauthn.helpers

from .providers.abc import UserProviderABC, UserStatus
from .. import exceptions

#

L = logging.getLogger(__name__)

#


class UserService(asab.Service):

	def __init__(self, app, service_name="jdue.UserService"):
		super().__init__(app, service_name)

		provider_type = asab.Config.get("jdue:user", "provider")
		if provider_type == "mongodb":
			from .providers.mongodb import MongoDBUserProvider
			self.Provider: UserProviderABC = MongoDBUserProvider(app, "jdue:user")
		elif provider_type == "dict":
			from .providers.dictionary import DictUserProvider
			self.Provider: UserProviderABC = DictUserProvider(app, "jdue:user")
		else:
			raise ValueError("Unsupported user provider type: {!r}".format(provider_type))


	async def create_user(
		self,
		username: str,
		password: str,
		email: str = None,
		is_admin: bool = False,
	) -> str:
		if email is None:
			# Accounts created by the administrator get a placeholder address
			email = "{}@example.local".format(re.sub(r"\s", "_", username))
		return await self.Provider.create({
			"username": username,
			"email": email,
			"password": password,
			"is_admin": is_admin,
			"status": UserStatus.ACTIVE,
		})


	async def get_user(self, user_id: str) -> dict:
		return await self.Provider.get(user_id)


	async def get_status(self, user_id: str) -> str:
		return await self.Provider.get_status(user_id)


	async def set_status(self, user_id: str, status: str):
		if status not in UserStatus.ALL:
			raise asab.exceptions.ValidationError("Unknown user status: {!r}".format(status))
		await self.Provider.update(user_id, {"status": status})
		L.log(asab.LOG_NOTICE, "User status changed", struct_data={"uid": user_id, "status": status})


	async def delete_user(self, user_id: str):
		await self.Provider.delete(user_id)


	async def count_users(self) -> int:
		return await self.Provider.count()


	async def iterate_users(self):
		async for user in self.Provider.iterate():
			yield user


	async def iterate_active_users(self):
		async for user in self.Provider.iterate():
			if user.get("status") == UserStatus.ACTIVE:
				yield user


	async def authenticate_password(self, ident: str, password: str) -> dict:
		"""
		Check username (or email) and password.
		Return the user object on success.
		"""
		user_id = await self.Provider.locate(ident)
		if user_id is None:
			L.log(asab.LOG_NOTICE, "Login failed: User not found", struct_data={"ident": ident})
			raise exceptions.InvalidCredentialsError()

		user = await self.Provider.get(user_id)
		if user["status"] != UserStatus.ACTIVE:
			L.log(asab.LOG_NOTICE, "Login failed: Account is not active", struct_data={
				"uid": user_id, "status": user["status"]})
			raise exceptions.AccountInactiveError(user_id, user["status"])

		if not await self.Provider.authenticate(user_id, password):
			L.log(asab.LOG_NOTICE, "Login failed: Wrong password", struct_data={"uid": user_id})
			raise exceptions.InvalidCredentialsError()

		return user


	async def update_own_account(
		self,
		user_id: str,
		email: str = None,
		current_password: str = None,
		new_password: str = None,
	) -> dict:
		"""
		Change the e-mail address and/or the password of the current user.
		Changing the password requires the current one.
		"""
		update = {}
		if email:
			update["email"] = email

		if new_password:
			if not current_password or not await self.Provider.authenticate(user_id, current_password):
				raise asab.exceptions.ValidationError("Current password is not correct.")
			update["password"] = new_password

		if len(update) > 0:
			await self.Provider.update(user_id, update)

		return await self.Provider.get(user_id)


	# Passkeys

	async def find_by_credential_id(self, passkey_id: bytes) -> typing.Optional[typing.Tuple[str, dict]]:
		return await self.Provider.find_by_credential_id(passkey_id)


	async def add_passkey(self, user_id: str, passkey: dict):
		await self.Provider.add_passkey(user_id, passkey)
		L.log(asab.LOG_NOTICE, "Passkey registered", struct_data={
			"uid": user_id, "passkey_id": passkey["id"].hex()})


	async def list_passkeys(self, user_id: str) -> list:
		return await self.Provider.list_passkeys(user_id)


	async def update_passkey(self, user_id: str, passkey_id: bytes, **kwargs):
		await self.Provider.update_passkey(user_id, passkey_id, **kwargs)


	async def delete_passkey(self, user_id: str, passkey_id: bytes):
		await self.Provider.delete_passkey(user_id, passkey_id)
		L.log(asab.LOG_NOTICE, "Passkey deleted", struct_data={
			"uid": user_id, "passkey_id": passkey_id.hex()})


def serialize_passkey(passkey: dict) -> dict:
	result = {
		"id": webauthn.helpers.bytes_to_base64url(passkey["id"]),
		"name": passkey.get("name"),
		"algorithm": passkey.get("alg"),
		"signCount": passkey.get("sc", 0),
		"createdAt": passkey.get("_c"),
	}
	if passkey.get("ll") is not None:
		result["lastLogin"] = passkey["ll"]
	return result


def serialize_user(user: dict) -> dict:
	return {
		"id": user["_id"],
		"username": user.get("username"),
		"email": user.get("email"),
		"isAdmin": bool(user.get("is_admin")),
		"status": user.get("status", UserStatus.ACTIVE),
		"passkeys": [serialize_passkey(pk) for pk in user.get("passkeys", [])],
	}
