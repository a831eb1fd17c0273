import datetime
import logging
import aiohttp.hdrs
import argon2
import bcrypt

#

L = logging.getLogger(__name__)

#


def get_bearer_token_value(request):
	bearer_prefix = "Bearer "
	auth_header = request.headers.get(aiohttp.hdrs.AUTHORIZATION, None)
	if auth_header is None:
		return None
	if auth_header.startswith(bearer_prefix):
		return auth_header[len(bearer_prefix):]

	L.info("No Bearer token in Authorization header")
	return None


def utcnow() -> datetime.datetime:
	return datetime.datetime.now(datetime.timezone.utc)


def bcrypt_verify(hash: bytes | str, secret: bytes | str) -> bool:
	if isinstance(hash, str):
		hash = hash.encode("utf-8")
	if isinstance(secret, str):
		secret = secret.encode("utf-8")
	return bcrypt.checkpw(secret, hash)


def argon2_hash(secret: bytes | str) -> str:
	return argon2.PasswordHasher().hash(secret)


def argon2_verify(hash: bytes | str, secret: bytes | str) -> bool:
	try:
		return argon2.PasswordHasher().verify(hash, secret)
	except argon2.exceptions.VerifyMismatchError:
		return False


def verify_password(hash: str, password: str) -> bool:
	"""
	Check if the password matches the hash.
	"""
	if hash.startswith("$2b$") or hash.startswith("$2a$") or hash.startswith("$2y$"):
		return bcrypt_verify(hash, password)
	elif hash.startswith("$argon2id$"):
		return argon2_verify(hash, password)
	else:
		L.warning("Unknown password hash function: {}".format(hash[:4]))
		return False
