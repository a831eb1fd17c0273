import hashlib
import logging
import re
import typing

import asab
import asab.exceptions
import asab.storage.exceptions
import bson
import bson.errors
import pymongo

from .abc import UserProviderABC, UserStatus, pick_passkey
from ... import generic, exceptions
from ...events import EventTypes

#

L = logging.getLogger(__name__)

#


class MongoDBUserProvider(UserProviderABC):
	"""
	User storage with MongoDB backend.
	Passkeys are stored inside the user document.

	Config options:
		users_collection: str
		Name of the users collection.
	"""

	Type = "mongodb"

	def __init__(self, app, config_section_name="jdue:user", config=None):
		super().__init__(app, config_section_name, config=config)
		self.StorageService = app.get_service("asab.StorageService")
		self.UsersCollection = self.Config["users_collection"]

		app.TaskService.schedule(self.initialize())


	async def initialize(self):
		coll = await self.StorageService.collection(self.UsersCollection)

		for attribute in ("username", "email", "passkeys.id"):
			try:
				await coll.create_index(
					[
						(attribute, pymongo.ASCENDING),
					],
					unique=True,
					partialFilterExpression={
						attribute: {"$exists": True}
					}
				)
			except Exception as e:
				L.warning("{}; fix it and restart the app".format(e))


	async def create(self, user: dict) -> str:
		username = user.get("username")
		if not username:
			raise asab.exceptions.ValidationError("Cannot create a user without username.")

		obj_id = bson.ObjectId(hashlib.sha224(username.lower().encode("utf-8")).digest()[:12])
		u = self.StorageService.upsertor(self.UsersCollection, obj_id)
		u.set("username", username)
		if user.get("email"):
			u.set("email", user["email"])
		u.set("is_admin", bool(user.get("is_admin", False)))
		u.set("status", user.get("status", UserStatus.ACTIVE))
		u.set("passkeys", [])
		if "password" in user:
			u.set("__password", generic.argon2_hash(user["password"]))

		try:
			mongodb_id = await u.execute(event_type=EventTypes.USER_CREATED)
		except asab.storage.exceptions.DuplicateError as e:
			raise _conflict(e)

		user_id = str(mongodb_id)
		L.log(asab.LOG_NOTICE, "User created", struct_data={"uid": user_id, "provider": self.Type})
		return user_id


	async def get(self, user_id: str, include=None) -> dict:
		db_obj = await self._get_object(user_id)
		return self._normalize_user(db_obj, user_id, include)


	async def update(self, user_id: str, update: dict):
		db_obj = await self._get_object(user_id)
		updated_fields = list(update.keys())

		u = self.StorageService.upsertor(self.UsersCollection, db_obj["_id"], version=db_obj["_v"])

		update = dict(update)
		password = update.pop("password", None)
		if password is not None:
			u.set("__password", generic.argon2_hash(password))

		for key, value in update.items():
			if key not in ("email", "status", "is_admin"):
				L.warning("Updating unknown field: {}".format(key))
			if value is not None:
				u.set(key, value)
			else:
				u.unset(key)

		try:
			await u.execute(event_type=EventTypes.USER_UPDATED)
		except asab.storage.exceptions.DuplicateError as e:
			raise _conflict(e)

		L.log(asab.LOG_NOTICE, "User updated", struct_data={
			"uid": user_id,
			"fields": ", ".join(updated_fields),
		})


	async def delete(self, user_id: str):
		db_obj = await self._get_object(user_id)
		await self.StorageService.delete(self.UsersCollection, db_obj["_id"])
		L.log(asab.LOG_NOTICE, "User deleted", struct_data={"uid": user_id, "provider": self.Type})


	async def locate(self, ident: str) -> typing.Optional[str]:
		pattern = re.compile("^{}$".format(re.escape(ident)), re.IGNORECASE)
		coll = await self.StorageService.collection(self.UsersCollection)
		obj = await coll.find_one({"$or": [{"username": pattern}, {"email": pattern}]})
		if obj is None:
			return None
		return str(obj["_id"])


	async def count(self) -> int:
		coll = await self.StorageService.collection(self.UsersCollection)
		return await coll.count_documents({})


	async def iterate(self):
		coll = await self.StorageService.collection(self.UsersCollection)
		cursor = coll.find({})
		cursor.sort("username", 1)
		async for db_obj in cursor:
			yield self._normalize_user(db_obj, str(db_obj["_id"]))


	async def find_by_credential_id(self, passkey_id: bytes) -> typing.Optional[typing.Tuple[str, dict]]:
		coll = await self.StorageService.collection(self.UsersCollection)
		cursor = coll.find({"passkeys.id": passkey_id}, limit=2)
		owners = []
		async for db_obj in cursor:
			owners.append(db_obj)

		if len(owners) == 0:
			return None
		if len(owners) > 1:
			L.warning("Passkey is registered to more than one user; using the first match.", struct_data={
				"passkey_id": passkey_id.hex(),
				"uids": ", ".join(str(o["_id"]) for o in owners),
			})

		user_id = str(owners[0]["_id"])
		return user_id, pick_passkey(user_id, owners[0].get("passkeys", []), passkey_id)


	async def add_passkey(self, user_id: str, passkey: dict):
		db_obj = await self._get_object(user_id)
		passkeys = list(db_obj.get("passkeys", []))
		if pick_passkey(user_id, passkeys, passkey["id"]) is not None:
			raise asab.exceptions.Conflict("Passkey already registered.", key="passkeys.id", value=passkey["id"].hex())
		passkeys.append(passkey)

		u = self.StorageService.upsertor(self.UsersCollection, db_obj["_id"], version=db_obj["_v"])
		u.set("passkeys", passkeys)
		try:
			await u.execute(event_type=EventTypes.PASSKEY_REGISTERED)
		except asab.storage.exceptions.DuplicateError as e:
			raise _conflict(e)


	async def update_passkey(
		self, user_id: str, passkey_id: bytes, *,
		sign_count: int = None,
		name: str = None,
		last_login=None,
	):
		db_obj = await self._get_object(user_id)
		passkeys = db_obj.get("passkeys", [])
		passkey = pick_passkey(user_id, passkeys, passkey_id)
		if passkey is None:
			raise exceptions.PasskeyNotFoundError(passkey_id)

		if sign_count is not None:
			passkey["sc"] = sign_count
		if name is not None:
			passkey["name"] = name
		if last_login is not None:
			passkey["ll"] = last_login

		u = self.StorageService.upsertor(self.UsersCollection, db_obj["_id"], version=db_obj["_v"])
		u.set("passkeys", passkeys)
		await u.execute(event_type=EventTypes.PASSKEY_UPDATED)


	async def delete_passkey(self, user_id: str, passkey_id: bytes):
		db_obj = await self._get_object(user_id)
		passkeys = db_obj.get("passkeys", [])
		remaining = [pk for pk in passkeys if pk.get("id") != passkey_id]
		if len(remaining) == len(passkeys):
			raise exceptions.PasskeyNotFoundError(passkey_id)

		u = self.StorageService.upsertor(self.UsersCollection, db_obj["_id"], version=db_obj["_v"])
		u.set("passkeys", remaining)
		await u.execute(event_type=EventTypes.PASSKEY_UPDATED)


	async def _get_object(self, user_id: str) -> dict:
		try:
			obj_id = bson.ObjectId(user_id)
		except (bson.errors.InvalidId, TypeError):
			raise exceptions.UserNotFoundError(user_id)

		try:
			return await self.StorageService.get(self.UsersCollection, obj_id)
		except KeyError:
			raise exceptions.UserNotFoundError(user_id)


def _conflict(e):
	if hasattr(e, "KeyValue") and e.KeyValue is not None:
		key, value = e.KeyValue.popitem()
		return asab.exceptions.Conflict(key=key, value=value)
	else:
		return asab.exceptions.Conflict()
