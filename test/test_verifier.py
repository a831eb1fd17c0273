import hashlib
import json
import os
import struct
import unittest

import cbor2
import cryptography.hazmat.primitives.asymmetric.ec as ec
import cryptography.hazmat.primitives.hashes
import webauthn.helpers

from jdue.exceptions import AccountInactiveError, CeremonyRejectedError, RejectReason
from jdue.user.providers import DictUserProvider
from jdue.webauthn.authdata import FLAG_AT, FLAG_UP, FLAG_UV
from jdue.webauthn.verifier import CeremonyVerifier


ORIGIN = "https://app.example"
RP_ID = "app.example"


class SoftAuthenticator:
	"""
	Produces WebAuthn responses the way a platform authenticator would, with an ES256 key.
	"""

	def __init__(self, rp_id=RP_ID):
		self.RpId = rp_id
		self.PrivateKey = ec.generate_private_key(ec.SECP256R1())
		self.CredentialId = os.urandom(32)
		self.SignCount = 0


	def cose_key(self):
		numbers = self.PrivateKey.public_key().public_numbers()
		return cbor2.dumps({
			1: 2,  # kty: EC2
			3: -7,  # alg: ES256
			-1: 1,  # crv: P-256
			-2: numbers.x.to_bytes(32, "big"),
			-3: numbers.y.to_bytes(32, "big"),
		})


	def auth_data(self, flags=FLAG_UP | FLAG_UV, attested=False, rp_id=None):
		data = hashlib.sha256((rp_id or self.RpId).encode("utf-8")).digest()
		if attested:
			flags |= FLAG_AT
		data += bytes([flags]) + struct.pack(">I", self.SignCount)
		if attested:
			data += bytes(16) + struct.pack(">H", len(self.CredentialId)) + self.CredentialId + self.cose_key()
		return data


	def create(self, challenge, origin=ORIGIN, **kwargs):
		client_data_json = client_data("webauthn.create", challenge, origin)
		attestation_object = cbor2.dumps({
			"fmt": "none",
			"attStmt": {},
			"authData": self.auth_data(attested=True, **kwargs),
		})
		return client_data_json, attestation_object


	def get(self, challenge, origin=ORIGIN, **kwargs):
		self.SignCount += 1
		client_data_json = client_data("webauthn.get", challenge, origin)
		authenticator_data = self.auth_data(**kwargs)
		signature = self.PrivateKey.sign(
			authenticator_data + hashlib.sha256(client_data_json).digest(),
			ec.ECDSA(cryptography.hazmat.primitives.hashes.SHA256())
		)
		return client_data_json, authenticator_data, signature


def client_data(ceremony_type, challenge, origin):
	return json.dumps({
		"type": ceremony_type,
		"challenge": webauthn.helpers.bytes_to_base64url(challenge),
		"origin": origin,
		"crossOrigin": False,
	}).encode("utf-8")


class CeremonyVerifierTestCase(unittest.IsolatedAsyncioTestCase):
	maxDiff = None

	async def asyncSetUp(self):
		self.Users = DictUserProvider(None)
		self.UserId = await self.Users.create({"username": "alice", "email": "alice@app.example"})
		self.Verifier = CeremonyVerifier(self.Users, ORIGIN, RP_ID)
		self.Authenticator = SoftAuthenticator()


	async def _register(self, authenticator=None):
		authenticator = authenticator or self.Authenticator
		challenge = os.urandom(32)
		client_data_json, attestation_object = authenticator.create(challenge)
		result = await self.Verifier.verify_registration(client_data_json, attestation_object, challenge)
		await self.Users.add_passkey(self.UserId, {
			"id": result.CredentialId,
			"pk": result.PublicKey,
			"alg": result.Algorithm,
			"sc": result.SignCount,
			"aa": result.Aaguid,
			"fmt": result.AttestationFormat,
			"name": "Test key",
		})
		return result


	async def _authenticate(self, challenge=None, expected_challenge=None, user_handle=None, **kwargs):
		challenge = challenge or os.urandom(32)
		client_data_json, authenticator_data, signature = self.Authenticator.get(challenge, **kwargs)
		return await self.Verifier.verify_authentication(
			self.Authenticator.CredentialId,
			client_data_json,
			authenticator_data,
			signature,
			expected_challenge or challenge,
			user_handle=user_handle,
		)


	async def test_registration(self):
		result = await self._register()
		self.assertEqual(result.CredentialId, self.Authenticator.CredentialId)
		self.assertEqual(result.Algorithm, -7)
		self.assertEqual(result.AttestationFormat, "none")
		self.assertEqual(result.SignCount, 0)
		self.assertTrue(result.UserVerified)

		found = await self.Users.find_by_credential_id(self.Authenticator.CredentialId)
		self.assertIsNotNone(found)
		self.assertEqual(found[0], self.UserId)


	async def test_registration_mismatched_origin(self):
		challenge = os.urandom(32)
		client_data_json, attestation_object = self.Authenticator.create(challenge, origin="https://evil.example")
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(client_data_json, attestation_object, challenge)
		self.assertEqual(context.exception.Reason, RejectReason.BAD_ORIGIN)
		self.assertIsNone(await self.Users.find_by_credential_id(self.Authenticator.CredentialId))


	async def test_registration_wrong_ceremony_type(self):
		challenge = os.urandom(32)
		_, attestation_object = self.Authenticator.create(challenge)
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(
				client_data("webauthn.get", challenge, ORIGIN), attestation_object, challenge)
		self.assertEqual(context.exception.Reason, RejectReason.BAD_TYPE)


	async def test_registration_bad_challenge(self):
		client_data_json, attestation_object = self.Authenticator.create(os.urandom(32))
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(client_data_json, attestation_object, os.urandom(32))
		self.assertEqual(context.exception.Reason, RejectReason.BAD_CHALLENGE)

		# No challenge was issued, or it has expired
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(client_data_json, attestation_object, None)
		self.assertEqual(context.exception.Reason, RejectReason.BAD_CHALLENGE)


	async def test_registration_rp_id_hash(self):
		challenge = os.urandom(32)
		client_data_json, attestation_object = self.Authenticator.create(challenge, rp_id="evil.example")
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(client_data_json, attestation_object, challenge)
		self.assertEqual(context.exception.Reason, RejectReason.BAD_RP_ID_HASH)


	async def test_registration_user_not_present(self):
		challenge = os.urandom(32)
		client_data_json, attestation_object = self.Authenticator.create(challenge, flags=0)
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(client_data_json, attestation_object, challenge)
		self.assertEqual(context.exception.Reason, RejectReason.USER_NOT_PRESENT)


	async def test_registration_duplicate(self):
		await self._register()
		challenge = os.urandom(32)
		client_data_json, attestation_object = self.Authenticator.create(challenge)
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(client_data_json, attestation_object, challenge)
		self.assertEqual(context.exception.Reason, RejectReason.DUPLICATE_CREDENTIAL)


	async def test_registration_malformed(self):
		challenge = os.urandom(32)
		client_data_json, _ = self.Authenticator.create(challenge)
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(client_data_json, cbor2.dumps(["not", "a", "map"]), challenge)
		self.assertEqual(context.exception.Reason, RejectReason.MALFORMED_RESPONSE)

		_, attestation_object = self.Authenticator.create(challenge)
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_registration(b"{not json", attestation_object, challenge)
		self.assertEqual(context.exception.Reason, RejectReason.MALFORMED_RESPONSE)


	async def test_registration_unparseable_key(self):
		numbers = self.Authenticator.PrivateKey.public_key().public_numbers()
		x = numbers.x.to_bytes(32, "big")
		y = numbers.y.to_bytes(32, "big")
		off_curve_y = ((numbers.y + 1) % (2 ** 256)).to_bytes(32, "big")
		bad_keys = [
			{1: 1, 3: -7, -1: 1, -2: x, -3: y},  # ES256 with kty OKP
			{1: 2, 3: -7, -1: 1, -2: x, -3: off_curve_y},
			{1: 2, 3: -7, -1: 1, -2: x[:31], -3: y},
			{1: 2, 3: -999, -1: 1, -2: x, -3: y},
		]
		for key in bad_keys:
			with self.subTest(key=key):
				self.Authenticator.cose_key = lambda: cbor2.dumps(key)
				challenge = os.urandom(32)
				client_data_json, attestation_object = self.Authenticator.create(challenge)
				with self.assertRaises(CeremonyRejectedError) as context:
					await self.Verifier.verify_registration(client_data_json, attestation_object, challenge)
				self.assertEqual(context.exception.Reason, RejectReason.UNPARSEABLE_KEY)
				self.assertIsNone(await self.Users.find_by_credential_id(self.Authenticator.CredentialId))


	async def test_authentication(self):
		await self._register()
		result = await self._authenticate(user_handle=self.UserId.encode("utf-8"))
		self.assertEqual(result.UserId, self.UserId)
		self.assertEqual(result.CredentialId, self.Authenticator.CredentialId)
		self.assertEqual(result.NewSignCount, 1)


	async def test_authentication_origin_gate(self):
		# The signature is valid, only the origin is wrong
		await self._register()
		with self.assertRaises(CeremonyRejectedError) as context:
			await self._authenticate(origin="https://evil.example")
		self.assertEqual(context.exception.Reason, RejectReason.BAD_ORIGIN)


	async def test_authentication_rp_id_hash_gate(self):
		# The signature is valid, only the RP ID hash is wrong
		await self._register()
		with self.assertRaises(CeremonyRejectedError) as context:
			await self._authenticate(rp_id="evil.example")
		self.assertEqual(context.exception.Reason, RejectReason.BAD_RP_ID_HASH)


	async def test_authentication_bad_challenge(self):
		await self._register()
		with self.assertRaises(CeremonyRejectedError) as context:
			await self._authenticate(expected_challenge=os.urandom(32))
		self.assertEqual(context.exception.Reason, RejectReason.BAD_CHALLENGE)


	async def test_authentication_signature_mismatch(self):
		await self._register()
		challenge = os.urandom(32)
		client_data_json, authenticator_data, _ = self.Authenticator.get(challenge)
		forged = SoftAuthenticator().PrivateKey.sign(
			authenticator_data + hashlib.sha256(client_data_json).digest(),
			ec.ECDSA(cryptography.hazmat.primitives.hashes.SHA256())
		)
		with self.assertRaises(CeremonyRejectedError) as context:
			await self.Verifier.verify_authentication(
				self.Authenticator.CredentialId, client_data_json, authenticator_data, forged, challenge)
		self.assertEqual(context.exception.Reason, RejectReason.SIGNATURE_MISMATCH)


	async def test_authentication_unknown_credential(self):
		with self.assertRaises(CeremonyRejectedError) as context:
			await self._authenticate()
		self.assertEqual(context.exception.Reason, RejectReason.CREDENTIAL_NOT_FOUND)


	async def test_authentication_user_handle_mismatch(self):
		await self._register()
		with self.assertRaises(CeremonyRejectedError) as context:
			await self._authenticate(user_handle=b"somebody-else")
		self.assertEqual(context.exception.Reason, RejectReason.USER_HANDLE_MISMATCH)


	async def test_authentication_inactive_account(self):
		await self._register()
		await self.Users.update(self.UserId, {"status": "banned"})
		with self.assertRaises(AccountInactiveError) as context:
			await self._authenticate()
		self.assertEqual(context.exception.Status, "banned")


	async def test_authentication_counter_regression_is_tolerated(self):
		await self._register()
		await self.Users.update_passkey(self.UserId, self.Authenticator.CredentialId, sign_count=100)
		result = await self._authenticate()
		self.assertEqual(result.NewSignCount, 1)
