import copy
import hashlib
import logging
import typing

import asab
import asab.exceptions

from .abc import UserProviderABC, UserStatus, pick_passkey
from ... import generic, exceptions

#

L = logging.getLogger(__name__)

#


class DictUserProvider(UserProviderABC):
	"""
	In-memory user storage for development and testing.
	Everything is lost on restart.
	"""

	Type = "dict"

	def __init__(self, app, config_section_name="jdue:user", config=None):
		super().__init__(app, config_section_name, config=config)
		self.Dictionary = {}


	async def create(self, user: dict) -> str:
		username = user.get("username")
		if not username:
			raise asab.exceptions.ValidationError("Cannot create a user without username.")

		if await self.locate(username) is not None:
			raise asab.exceptions.Conflict("Username already exists.", key="username", value=username)
		email = user.get("email")
		if email and await self.locate(email) is not None:
			raise asab.exceptions.Conflict("Email already in use.", key="email", value=email)

		user_id = hashlib.sha224(username.lower().encode("utf-8")).hexdigest()[:24]
		now = generic.utcnow()
		user_object = {
			"_id": user_id,
			"_v": 1,
			"_c": now,
			"_m": now,
			"username": username,
			"email": email,
			"is_admin": bool(user.get("is_admin", False)),
			"status": user.get("status", UserStatus.ACTIVE),
			"passkeys": [],
		}
		if "password" in user:
			user_object["__password"] = generic.argon2_hash(user["password"])

		self.Dictionary[user_id] = user_object
		L.log(asab.LOG_NOTICE, "User created", struct_data={"uid": user_id, "provider": self.Type})
		return user_id


	async def get(self, user_id: str, include=None) -> dict:
		user = self._get_object(user_id)
		return self._normalize_user(copy.deepcopy(user), user_id, include)


	async def update(self, user_id: str, update: dict):
		user = self._get_object(user_id)

		email = update.get("email")
		if email:
			owner = await self.locate(email)
			if owner is not None and owner != user_id:
				raise asab.exceptions.Conflict("Email already in use.", key="email", value=email)

		update = dict(update)
		password = update.pop("password", None)
		if password is not None:
			user["__password"] = generic.argon2_hash(password)

		for key, value in update.items():
			if value is None:
				user.pop(key, None)
			else:
				user[key] = value

		user["_v"] += 1
		user["_m"] = generic.utcnow()


	async def delete(self, user_id: str):
		self._get_object(user_id)
		self.Dictionary.pop(user_id)
		L.log(asab.LOG_NOTICE, "User deleted", struct_data={"uid": user_id, "provider": self.Type})


	async def locate(self, ident: str) -> typing.Optional[str]:
		ident = ident.lower()
		for user_id, user in self.Dictionary.items():
			if ident == user["username"].lower():
				return user_id
			if user.get("email") and ident == user["email"].lower():
				return user_id
		return None


	async def count(self) -> int:
		return len(self.Dictionary)


	async def iterate(self):
		for user_id, user in list(self.Dictionary.items()):
			yield self._normalize_user(copy.deepcopy(user), user_id)


	async def find_by_credential_id(self, passkey_id: bytes) -> typing.Optional[typing.Tuple[str, dict]]:
		for user_id, user in self.Dictionary.items():
			passkey = pick_passkey(user_id, user["passkeys"], passkey_id)
			if passkey is not None:
				return user_id, copy.deepcopy(passkey)
		return None


	async def add_passkey(self, user_id: str, passkey: dict):
		user = self._get_object(user_id)
		if await self.find_by_credential_id(passkey["id"]) is not None:
			raise asab.exceptions.Conflict("Passkey already registered.", key="passkeys.id", value=passkey["id"].hex())
		user["passkeys"].append(dict(passkey))
		user["_v"] += 1
		user["_m"] = generic.utcnow()


	async def update_passkey(
		self, user_id: str, passkey_id: bytes, *,
		sign_count: int = None,
		name: str = None,
		last_login=None,
	):
		user = self._get_object(user_id)
		passkey = pick_passkey(user_id, user["passkeys"], passkey_id)
		if passkey is None:
			raise exceptions.PasskeyNotFoundError(passkey_id)

		if sign_count is not None:
			passkey["sc"] = sign_count
		if name is not None:
			passkey["name"] = name
		if last_login is not None:
			passkey["ll"] = last_login
		user["_v"] += 1


	async def delete_passkey(self, user_id: str, passkey_id: bytes):
		user = self._get_object(user_id)
		remaining = [pk for pk in user["passkeys"] if pk.get("id") != passkey_id]
		if len(remaining) == len(user["passkeys"]):
			raise exceptions.PasskeyNotFoundError(passkey_id)
		user["passkeys"] = remaining
		user["_v"] += 1


	def _get_object(self, user_id: str) -> dict:
		user = self.Dictionary.get(user_id)
		if user is None:
			raise exceptions.UserNotFoundError(user_id)
		return user
