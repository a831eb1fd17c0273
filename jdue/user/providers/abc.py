import abc
import logging
import typing

import asab

from ... import generic

#

L = logging.getLogger(__name__)

#


class UserStatus:
	ACTIVE = "active"
	BANNED = "banned"
	DEACTIVATED = "deactivated"

	ALL = frozenset((ACTIVE, BANNED, DEACTIVATED))


class UserProviderABC(asab.Configurable, abc.ABC):
	"""
	Storage of user accounts and their passkeys.

	User objects are plain dicts:
		_id: str
		username: str
		email: str
		is_admin: bool
		status: "active" | "banned" | "deactivated"
		passkeys: list of passkey dicts (see below)
		__password: password hash (only returned when requested with `include`)

	Passkey dicts:
		id: bytes, the authenticator-issued credential ID, unique across all users
		pk: bytes, DER-encoded SubjectPublicKeyInfo
		alg: int, COSE algorithm identifier
		sc: int, last seen signature counter
		aa: bytes, authenticator AAGUID
		fmt: str, attestation statement format
		name: str
		_c: datetime, registration time
		ll: datetime, last login time (optional)
	"""

	Type = "abc"

	ConfigDefaults = {
		"users_collection": "u",
	}

	def __init__(self, app, config_section_name, config=None):
		super().__init__(config_section_name=config_section_name, config=config)
		self.App = app


	@abc.abstractmethod
	async def create(self, user: dict) -> str:
		"""
		Create a user and return its ID.
		`user` may contain a plain `password`; it is stored hashed.
		Raise `asab.exceptions.Conflict` when the username or email is taken.
		"""
		raise NotImplementedError("in {}".format(self.Type))

	@abc.abstractmethod
	async def get(self, user_id: str, include=None) -> dict:
		"""
		Raise `UserNotFoundError` when the user does not exist.
		"""
		raise NotImplementedError("in {}".format(self.Type))

	@abc.abstractmethod
	async def update(self, user_id: str, update: dict):
		raise NotImplementedError("in {}".format(self.Type))

	@abc.abstractmethod
	async def delete(self, user_id: str):
		raise NotImplementedError("in {}".format(self.Type))

	@abc.abstractmethod
	async def locate(self, ident: str) -> typing.Optional[str]:
		"""
		Find a user by username or email (case-insensitive).
		Return the user ID or None if not found.
		"""
		return None

	@abc.abstractmethod
	async def count(self) -> int:
		raise NotImplementedError("in {}".format(self.Type))

	async def iterate(self):
		for item in []:
			yield item


	async def get_status(self, user_id: str) -> str:
		user = await self.get(user_id)
		return user.get("status", UserStatus.ACTIVE)


	async def authenticate(self, user_id: str, password: str) -> bool:
		user = await self.get(user_id, include={"__password"})
		password_hash = user.get("__password")
		if not password_hash:
			return False
		return generic.verify_password(password_hash, password)


	# Passkeys

	@abc.abstractmethod
	async def find_by_credential_id(self, passkey_id: bytes) -> typing.Optional[typing.Tuple[str, dict]]:
		"""
		Look a passkey up across all users.
		Return a tuple of the owner's user ID and the passkey dict, or None.
		"""
		return None

	@abc.abstractmethod
	async def add_passkey(self, user_id: str, passkey: dict):
		"""
		Raise `asab.exceptions.Conflict` when a passkey with the same ID is already stored.
		"""
		raise NotImplementedError("in {}".format(self.Type))

	@abc.abstractmethod
	async def update_passkey(
		self, user_id: str, passkey_id: bytes, *,
		sign_count: int = None,
		name: str = None,
		last_login=None,
	):
		raise NotImplementedError("in {}".format(self.Type))

	@abc.abstractmethod
	async def delete_passkey(self, user_id: str, passkey_id: bytes):
		raise NotImplementedError("in {}".format(self.Type))

	async def list_passkeys(self, user_id: str) -> list:
		user = await self.get(user_id)
		return list(user.get("passkeys") or [])


	def _normalize_user(self, db_obj, user_id: str, include=None) -> dict:
		obj = {
			"_id": user_id,
			"_provider": self.Type,
		}
		if include is None:
			include = frozenset()
		for key, value in db_obj.items():
			if key.startswith("__") and key not in include:
				# Don't expose private fields
				continue
			if key in ("_id", "_provider"):
				continue
			obj[key] = value
		obj.setdefault("status", UserStatus.ACTIVE)
		obj.setdefault("is_admin", False)
		obj.setdefault("passkeys", [])
		return obj


def pick_passkey(user_id: str, passkeys: list, passkey_id: bytes) -> typing.Optional[dict]:
	"""
	Return the first passkey with the given ID.
	More than one match means the store is corrupt; the first one wins.
	"""
	matches = [pk for pk in passkeys if pk.get("id") == passkey_id]
	if len(matches) == 0:
		return None
	if len(matches) > 1:
		L.warning("Passkey ID is not unique; using the first match.", struct_data={
			"uid": user_id, "passkey_id": passkey_id.hex(), "count": len(matches)})
	return matches[0]
