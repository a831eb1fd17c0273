import datetime
import json
import logging
import secrets
import typing
import urllib.parse

import asab
import asab.exceptions
import asab.metrics
import webauthn
import webauthn.helpers
import webauthn.helpers.structs

from .cose import SUPPORTED_ALGORITHMS
from .verifier import CeremonyVerifier
from .. import exceptions
from ..events import EventTypes
from ..exceptions import RejectReason
from ..generic import utcnow

#

L = logging.getLogger(__name__)

#


asab.Config.add_defaults({
	"jdue:webauthn": {
		"relying_party_name": "JDue",

		# RP ID must match host's domain name (without scheme, port or subpath)
		# Derived from the origin when empty
		"relying_party_id": "",

		# Derived from [general] public_url when empty
		"origin": "",

		"challenge_timeout": "5 m",

		# "none", "indirect", "direct" or "enterprise"
		"attestation": "none",
	}
})


class CeremonyType:
	REGISTRATION = "registration"
	AUTHENTICATION = "authentication"


class WebAuthnService(asab.Service):
	"""
	Passkey registration and passwordless login.

	Each ceremony starts with issuing options that carry a fresh challenge. The challenge is stored
	under a random ceremony ID with an expiration time and is consumed (deleted) when the client
	sends the authenticator response back, whether the verification then succeeds or not.
	"""

	ChallengeCollection = "wch"

	def __init__(self, app, service_name="jdue.WebAuthnService"):
		super().__init__(app, service_name)
		self.StorageService = app.get_service("asab.StorageService")
		self.UserService = app.get_service("jdue.UserService")
		self.SessionService = app.get_service("jdue.SessionService")
		self.MetricsService = app.get_service("asab.MetricsService")

		self.RelyingPartyName = asab.Config.get("jdue:webauthn", "relying_party_name")

		self.Origin = asab.Config.get("jdue:webauthn", "origin").rstrip("/")
		if len(self.Origin) == 0:
			parsed = urllib.parse.urlparse(app.PublicUrl)
			self.Origin = "{}://{}".format(parsed.scheme, parsed.netloc)

		self.RelyingPartyId = asab.Config.get("jdue:webauthn", "relying_party_id")
		if len(self.RelyingPartyId) == 0:
			self.RelyingPartyId = str(urllib.parse.urlparse(self.Origin).hostname)

		self.AttestationPreference = asab.Config.get("jdue:webauthn", "attestation")
		if self.AttestationPreference not in {"none", "direct", "indirect", "enterprise"}:
			raise ValueError("Unsupported WebAuthn 'attestation' value: {!r}".format(self.AttestationPreference))

		self.ChallengeTimeout = datetime.timedelta(
			seconds=asab.Config.getseconds("jdue:webauthn", "challenge_timeout"))

		self.Verifier = CeremonyVerifier(self.UserService, self.Origin, self.RelyingPartyId)

		self.CeremonyCounter: asab.metrics.Counter = self.MetricsService.create_counter(
			"webauthn_ceremonies",
			tags={"help": "Number of verified and rejected WebAuthn ceremonies."},
			init_values={"verified": 0, "rejected": 0})

		app.PubSub.subscribe("Application.housekeeping!", self._on_housekeeping)


	async def _on_housekeeping(self, event_name):
		await self._delete_expired_challenges()


	async def get_registration_options(self, user_id: str) -> dict:
		"""
		Get WebAuthn registration options

		https://www.w3.org/TR/webauthn/#dictdef-publickeycredentialcreationoptions
		"""
		user = await self.UserService.get_user(user_id)
		ceremony_id, challenge = await self._create_challenge(CeremonyType.REGISTRATION, user_id)

		options = webauthn.generate_registration_options(
			rp_id=self.RelyingPartyId,
			rp_name=self.RelyingPartyName,
			user_id=user_id.encode("utf-8"),
			user_name=user["username"],
			user_display_name=user["username"],
			challenge=challenge,
			timeout=int(self.ChallengeTimeout.total_seconds() * 1000),
			exclude_credentials=[
				webauthn.helpers.structs.PublicKeyCredentialDescriptor(id=passkey["id"])
				for passkey in user.get("passkeys", [])
			],
			authenticator_selection=webauthn.helpers.structs.AuthenticatorSelectionCriteria(
				resident_key=webauthn.helpers.structs.ResidentKeyRequirement.PREFERRED,
			),
			supported_pub_key_algs=SUPPORTED_ALGORITHMS,
			attestation=webauthn.helpers.structs.AttestationConveyancePreference(self.AttestationPreference),
		)
		return {
			"ceremony_id": ceremony_id,
			"options": json.loads(webauthn.options_to_json(options)),
		}


	async def get_authentication_options(self) -> dict:
		"""
		Get WebAuthn authentication options

		The user is not known in advance, so no credentials are listed and the authenticator
		offers its discoverable credentials for this relying party.

		https://www.w3.org/TR/webauthn/#dictdef-publickeycredentialrequestoptions
		"""
		ceremony_id, challenge = await self._create_challenge(CeremonyType.AUTHENTICATION)
		options = webauthn.generate_authentication_options(
			rp_id=self.RelyingPartyId,
			challenge=challenge,
			timeout=int(self.ChallengeTimeout.total_seconds() * 1000),
			user_verification=webauthn.helpers.structs.UserVerificationRequirement.PREFERRED,
		)
		return {
			"ceremony_id": ceremony_id,
			"options": json.loads(webauthn.options_to_json(options)),
		}


	async def register_passkey(
		self,
		user_id: str,
		ceremony_id: str,
		public_key_credential: dict,
		name: str = None,
	) -> dict:
		"""
		Verify a registration response and store the new passkey

		https://www.w3.org/TR/webauthn/#sctn-registering-a-new-credential
		"""
		expected_challenge = await self._consume_challenge(ceremony_id, CeremonyType.REGISTRATION, user_id)
		response = public_key_credential.get("response") or {}

		try:
			client_data_json = _decode_field(response, "clientDataJSON")
			attestation_object = _decode_field(response, "attestationObject")
			verified = await self.Verifier.verify_registration(
				client_data_json=client_data_json,
				attestation_object=attestation_object,
				expected_challenge=expected_challenge,
			)
		except exceptions.CeremonyRejectedError as e:
			self.CeremonyCounter.add("rejected", 1)
			L.log(asab.LOG_NOTICE, "Passkey registration rejected", struct_data={
				"uid": user_id, "reason": e.Reason.value})
			raise

		now = utcnow()
		passkey = {
			"id": verified.CredentialId,
			"pk": verified.PublicKey,
			"alg": verified.Algorithm,
			"sc": verified.SignCount,
			"aa": verified.Aaguid,
			"fmt": verified.AttestationFormat,
			"name": name or "Passkey {}".format(now.strftime("%y%m%d-%H%M%S")),
			"_c": now,
		}

		try:
			await self.UserService.add_passkey(user_id, passkey)
		except asab.exceptions.Conflict:
			# Registered concurrently by another request
			self.CeremonyCounter.add("rejected", 1)
			raise exceptions.CeremonyRejectedError(
				RejectReason.DUPLICATE_CREDENTIAL, "This passkey is already registered.")

		self.CeremonyCounter.add("verified", 1)
		return passkey


	async def authenticate(self, ceremony_id: str, public_key_credential: dict) -> str:
		"""
		Verify an authentication response and issue a session token for the passkey owner

		https://www.w3.org/TR/webauthn/#sctn-verifying-assertion
		"""
		expected_challenge = await self._consume_challenge(ceremony_id, CeremonyType.AUTHENTICATION)
		response = public_key_credential.get("response") or {}

		try:
			credential_id = _decode_field(public_key_credential, "rawId")
			user_handle = response.get("userHandle")
			if user_handle:
				user_handle = _decode_field(response, "userHandle")
			verified = await self.Verifier.verify_authentication(
				credential_id=credential_id,
				client_data_json=_decode_field(response, "clientDataJSON"),
				authenticator_data=_decode_field(response, "authenticatorData"),
				signature=_decode_field(response, "signature"),
				expected_challenge=expected_challenge,
				user_handle=user_handle or None,
			)
		except (exceptions.CeremonyRejectedError, exceptions.AccountInactiveError):
			self.CeremonyCounter.add("rejected", 1)
			raise

		self.CeremonyCounter.add("verified", 1)
		try:
			await self.UserService.update_passkey(
				verified.UserId,
				verified.CredentialId,
				sign_count=verified.NewSignCount,
				last_login=utcnow(),
			)
		except KeyError as e:
			# Concurrent write or passkey removed meanwhile; the login itself is verified
			L.warning("Failed to update passkey sign count: {}".format(e), struct_data={
				"uid": verified.UserId, "passkey_id": verified.CredentialId.hex()})

		user = await self.UserService.get_user(verified.UserId)
		L.log(asab.LOG_NOTICE, "Passkey login successful", struct_data={
			"uid": verified.UserId, "passkey_id": verified.CredentialId.hex()})
		return self.SessionService.issue_session(verified.UserId, {"admin": bool(user.get("is_admin"))})


	async def _create_challenge(self, ceremony_type: str, user_id: str = None) -> typing.Tuple[str, bytes]:
		ceremony_id = secrets.token_urlsafe(16)
		challenge = secrets.token_bytes(32)

		upsertor = self.StorageService.upsertor(self.ChallengeCollection, obj_id=ceremony_id)
		upsertor.set("exp", utcnow() + self.ChallengeTimeout)
		upsertor.set("ch", challenge)
		upsertor.set("type", ceremony_type)
		if user_id is not None:
			upsertor.set("uid", user_id)
		await upsertor.execute(event_type=EventTypes.WEBAUTHN_CHALLENGE_CREATED)

		L.info("WebAuthn challenge created", struct_data={"ceremony_id": ceremony_id, "type": ceremony_type})
		return ceremony_id, challenge


	async def _consume_challenge(
		self,
		ceremony_id: str,
		ceremony_type: str,
		user_id: str = None,
	) -> typing.Optional[bytes]:
		"""
		Read and delete the challenge of the ceremony.
		Return None if there is no usable challenge; the verifier then rejects the response.
		"""
		try:
			challenge_obj = await self.StorageService.get(self.ChallengeCollection, ceremony_id)
			# Only the request that succeeds in deleting the challenge may use it
			await self.StorageService.delete(self.ChallengeCollection, ceremony_id)
		except KeyError:
			L.log(asab.LOG_NOTICE, "WebAuthn challenge not found", struct_data={"ceremony_id": ceremony_id})
			return None

		if challenge_obj.get("type") != ceremony_type:
			L.log(asab.LOG_NOTICE, "WebAuthn challenge issued for another ceremony", struct_data={
				"ceremony_id": ceremony_id, "type": challenge_obj.get("type")})
			return None

		if challenge_obj.get("uid") != user_id:
			L.log(asab.LOG_NOTICE, "WebAuthn challenge issued for another user", struct_data={
				"ceremony_id": ceremony_id, "uid": user_id})
			return None

		expires_at = challenge_obj["exp"]
		if expires_at.tzinfo is None:
			expires_at = expires_at.replace(tzinfo=datetime.timezone.utc)
		if expires_at < utcnow():
			L.log(asab.LOG_NOTICE, "WebAuthn challenge timed out", struct_data={"ceremony_id": ceremony_id})
			return None

		return challenge_obj["ch"]


	async def _delete_expired_challenges(self):
		"""
		Delete expired WebAuthn challenges
		"""
		collection = await self.StorageService.collection(self.ChallengeCollection)

		query_filter = {"exp": {"$lt": utcnow()}}
		result = await collection.delete_many(query_filter)
		if result.deleted_count > 0:
			L.log(asab.LOG_NOTICE, "Expired WebAuthn challenges deleted.", struct_data={
				"count": result.deleted_count
			})


def _decode_field(container: dict, key: str) -> bytes:
	value = container.get(key)
	if not isinstance(value, str):
		raise exceptions.CeremonyRejectedError(
			RejectReason.MALFORMED_RESPONSE, "Missing {!r} in authenticator response.".format(key))
	try:
		return webauthn.helpers.base64url_to_bytes(value)
	except ValueError:
		raise exceptions.CeremonyRejectedError(
			RejectReason.MALFORMED_RESPONSE, "Field {!r} is not valid base64url.".format(key))
