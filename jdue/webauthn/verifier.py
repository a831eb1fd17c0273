import dataclasses
import hashlib
import hmac
import json
import logging
import typing

import asab
import webauthn.helpers

from .. import exceptions
from ..exceptions import RejectReason
from .authdata import AuthenticatorDataError, parse_attestation_object, parse_authenticator_data
from .cose import COSEKeyError, cose_key_to_spki, verify_signature

#

L = logging.getLogger(__name__)

#


class PasskeyStore(typing.Protocol):
	"""
	Credential store used by the verifier.
	Passkey IDs are unique across the whole store, not only per user.
	"""

	async def find_by_credential_id(self, passkey_id: bytes) -> typing.Optional[typing.Tuple[str, dict]]:
		...

	async def get_status(self, user_id: str) -> str:
		...


@dataclasses.dataclass
class VerifiedRegistration:
	CredentialId: bytes
	PublicKey: bytes  # DER SubjectPublicKeyInfo
	Algorithm: int
	SignCount: int
	Aaguid: bytes
	AttestationFormat: str
	UserVerified: bool


@dataclasses.dataclass
class VerifiedAuthentication:
	UserId: str
	CredentialId: bytes
	NewSignCount: int
	UserVerified: bool


class CeremonyVerifier:
	"""
	Verify WebAuthn registration and authentication responses.

	https://www.w3.org/TR/webauthn-2/#sctn-registering-a-new-credential
	https://www.w3.org/TR/webauthn-2/#sctn-verifying-assertion

	Every check is a hard gate: the first failing check raises `CeremonyRejectedError`
	and nothing is persisted. The asynchronous device interaction happens in the browser;
	this class only works on the byte buffers the browser returned.
	"""

	def __init__(self, passkey_store: PasskeyStore, origin: str, rp_id: str):
		self.PasskeyStore = passkey_store
		self.Origin = origin
		self.RelyingPartyId = rp_id
		self.RpIdHash = hashlib.sha256(rp_id.encode("utf-8")).digest()


	async def verify_registration(
		self,
		client_data_json: bytes,
		attestation_object: bytes,
		expected_challenge: typing.Optional[bytes],
	) -> VerifiedRegistration:
		client_data = _parse_client_data(client_data_json)
		self._verify_client_data(client_data, "webauthn.create", expected_challenge)

		try:
			attestation = parse_attestation_object(attestation_object)
			auth_data = parse_authenticator_data(attestation.AuthData)
		except AuthenticatorDataError as e:
			_reject(RejectReason.MALFORMED_RESPONSE, str(e))

		self._verify_rp_id_hash(auth_data.RpIdHash)
		if not auth_data.UserPresent:
			_reject(RejectReason.USER_NOT_PRESENT, "User presence flag not set.")

		attested = auth_data.AttestedCredential
		if attested is None:
			_reject(RejectReason.MALFORMED_RESPONSE, "No attested credential data in registration response.")

		if await self.PasskeyStore.find_by_credential_id(attested.CredentialId) is not None:
			_reject(RejectReason.DUPLICATE_CREDENTIAL, "This passkey is already registered.")

		try:
			algorithm, public_key = cose_key_to_spki(attested.CredentialPublicKey)
		except COSEKeyError as e:
			_reject(RejectReason.UNPARSEABLE_KEY, str(e))

		return VerifiedRegistration(
			CredentialId=attested.CredentialId,
			PublicKey=public_key,
			Algorithm=algorithm,
			SignCount=auth_data.SignCount,
			Aaguid=attested.Aaguid,
			AttestationFormat=attestation.Format,
			UserVerified=auth_data.UserVerified,
		)


	async def verify_authentication(
		self,
		credential_id: bytes,
		client_data_json: bytes,
		authenticator_data: bytes,
		signature: bytes,
		expected_challenge: typing.Optional[bytes],
		user_handle: typing.Optional[bytes] = None,
	) -> VerifiedAuthentication:
		found = await self.PasskeyStore.find_by_credential_id(credential_id)
		if found is None:
			_reject(RejectReason.CREDENTIAL_NOT_FOUND, "Passkey not registered.")
		user_id, passkey = found

		status = await self.PasskeyStore.get_status(user_id)
		if status != "active":
			L.log(asab.LOG_NOTICE, "Passkey login to inactive account", struct_data={
				"uid": user_id, "status": status})
			raise exceptions.AccountInactiveError(user_id, status)

		client_data = _parse_client_data(client_data_json)
		self._verify_client_data(client_data, "webauthn.get", expected_challenge)

		try:
			auth_data = parse_authenticator_data(authenticator_data)
		except AuthenticatorDataError as e:
			_reject(RejectReason.MALFORMED_RESPONSE, str(e))

		self._verify_rp_id_hash(auth_data.RpIdHash)
		if not auth_data.UserPresent:
			_reject(RejectReason.USER_NOT_PRESENT, "User presence flag not set.")

		if user_handle is not None and len(user_handle) > 0:
			if user_handle != user_id.encode("utf-8"):
				_reject(RejectReason.USER_HANDLE_MISMATCH, "User handle does not belong to the passkey owner.")

		signature_base = authenticator_data + hashlib.sha256(client_data_json).digest()
		try:
			valid = verify_signature(passkey["pk"], passkey["alg"], signature, signature_base)
		except COSEKeyError as e:
			L.warning("Stored passkey cannot be used for verification: {}".format(e), struct_data={
				"uid": user_id, "passkey_id": credential_id.hex()})
			_reject(RejectReason.UNPARSEABLE_KEY, str(e))
		if not valid:
			_reject(RejectReason.SIGNATURE_MISMATCH, "Signature validation failed.")

		stored_sign_count = passkey.get("sc", 0)
		if (auth_data.SignCount > 0 or stored_sign_count > 0) and auth_data.SignCount <= stored_sign_count:
			L.warning("Passkey signature counter did not increase; the authenticator may be cloned.", struct_data={
				"uid": user_id,
				"passkey_id": credential_id.hex(),
				"stored": stored_sign_count,
				"received": auth_data.SignCount,
			})

		return VerifiedAuthentication(
			UserId=user_id,
			CredentialId=credential_id,
			NewSignCount=auth_data.SignCount,
			UserVerified=auth_data.UserVerified,
		)


	def _verify_client_data(self, client_data: dict, expected_type: str, expected_challenge: typing.Optional[bytes]):
		if client_data.get("type") != expected_type:
			_reject(RejectReason.BAD_TYPE, "Invalid client data type {!r}.".format(client_data.get("type")))

		if client_data.get("origin") != self.Origin:
			_reject(RejectReason.BAD_ORIGIN, "Invalid origin {!r}.".format(client_data.get("origin")))

		if expected_challenge is None:
			_reject(RejectReason.BAD_CHALLENGE, "No pending challenge for this ceremony.")
		try:
			challenge = webauthn.helpers.base64url_to_bytes(client_data.get("challenge") or "")
		except ValueError:
			_reject(RejectReason.BAD_CHALLENGE, "Challenge is not valid base64url.")
		if len(challenge) == 0 or not hmac.compare_digest(challenge, expected_challenge):
			_reject(RejectReason.BAD_CHALLENGE, "Challenge does not match the issued one.")


	def _verify_rp_id_hash(self, rp_id_hash: bytes):
		if not hmac.compare_digest(rp_id_hash, self.RpIdHash):
			_reject(RejectReason.BAD_RP_ID_HASH, "Invalid RP ID hash.")


def _parse_client_data(client_data_json: bytes) -> dict:
	try:
		client_data = json.loads(client_data_json.decode("utf-8"))
	except (UnicodeDecodeError, ValueError):
		_reject(RejectReason.MALFORMED_RESPONSE, "Client data is not valid JSON.")
	if not isinstance(client_data, dict):
		_reject(RejectReason.MALFORMED_RESPONSE, "Client data is not a JSON object.")
	return client_data


def _reject(reason: RejectReason, message: str) -> typing.NoReturn:
	L.log(asab.LOG_NOTICE, "WebAuthn ceremony rejected", struct_data={"reason": reason.value, "detail": message})
	raise exceptions.CeremonyRejectedError(reason, message)
