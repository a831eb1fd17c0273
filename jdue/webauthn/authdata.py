import dataclasses
import io
import struct
import typing

import cbor2

# Authenticator data layout
# https://www.w3.org/TR/webauthn-2/#sctn-authenticator-data

FLAG_UP = 0x01  # User present
FLAG_UV = 0x04  # User verified
FLAG_BE = 0x08  # Backup eligible
FLAG_BS = 0x10  # Backup state
FLAG_AT = 0x40  # Attested credential data included
FLAG_ED = 0x80  # Extension data included

RP_ID_HASH_LENGTH = 32
AAGUID_LENGTH = 16
_HEADER_LENGTH = RP_ID_HASH_LENGTH + 1 + 4


class AuthenticatorDataError(ValueError):
	pass


@dataclasses.dataclass
class AttestedCredentialData:
	Aaguid: bytes
	CredentialId: bytes
	# Raw COSE_Key bytes
	CredentialPublicKey: bytes


@dataclasses.dataclass
class AuthenticatorData:
	RpIdHash: bytes
	Flags: int
	SignCount: int
	AttestedCredential: typing.Optional[AttestedCredentialData]
	Extensions: typing.Optional[dict]

	@property
	def UserPresent(self) -> bool:
		return bool(self.Flags & FLAG_UP)

	@property
	def UserVerified(self) -> bool:
		return bool(self.Flags & FLAG_UV)


@dataclasses.dataclass
class AttestationObject:
	Format: str
	Statement: dict
	AuthData: bytes


def parse_authenticator_data(data: bytes) -> AuthenticatorData:
	"""
	Split raw authenticator data into its fields.

	The COSE public key and the extensions are CBOR items of unknown length, so their
	boundaries are found by decoding them from a stream and reading back the stream position.
	"""
	if len(data) < _HEADER_LENGTH:
		raise AuthenticatorDataError("Authenticator data too short ({} bytes)".format(len(data)))

	rp_id_hash = data[:RP_ID_HASH_LENGTH]
	flags = data[RP_ID_HASH_LENGTH]
	sign_count, = struct.unpack(">I", data[RP_ID_HASH_LENGTH + 1:_HEADER_LENGTH])
	pointer = _HEADER_LENGTH

	attested_credential_data = None
	if flags & FLAG_AT:
		if len(data) < pointer + AAGUID_LENGTH + 2:
			raise AuthenticatorDataError("Attested credential data truncated")
		aaguid = data[pointer:pointer + AAGUID_LENGTH]
		pointer += AAGUID_LENGTH

		credential_id_length, = struct.unpack(">H", data[pointer:pointer + 2])
		pointer += 2

		credential_id = data[pointer:pointer + credential_id_length]
		if len(credential_id) != credential_id_length:
			raise AuthenticatorDataError("Credential ID truncated")
		pointer += credential_id_length

		public_key, length = _decode_cbor_item(data, pointer)
		if not isinstance(public_key, dict):
			raise AuthenticatorDataError("Credential public key is not a COSE_Key map")
		attested_credential_data = AttestedCredentialData(
			Aaguid=aaguid,
			CredentialId=credential_id,
			CredentialPublicKey=data[pointer:pointer + length],
		)
		pointer += length

	extensions = None
	if flags & FLAG_ED:
		extensions, length = _decode_cbor_item(data, pointer)
		if not isinstance(extensions, dict):
			raise AuthenticatorDataError("Extensions are not a CBOR map")
		pointer += length

	if pointer != len(data):
		raise AuthenticatorDataError("{} unexpected trailing bytes in authenticator data".format(len(data) - pointer))

	return AuthenticatorData(
		RpIdHash=rp_id_hash,
		Flags=flags,
		SignCount=sign_count,
		AttestedCredential=attested_credential_data,
		Extensions=extensions,
	)


def parse_attestation_object(data: bytes) -> AttestationObject:
	try:
		obj = cbor2.loads(data)
	except (cbor2.CBORDecodeError, EOFError) as e:
		raise AuthenticatorDataError("Attestation object is not valid CBOR") from e

	if not isinstance(obj, dict):
		raise AuthenticatorDataError("Attestation object is not a CBOR map")

	fmt = obj.get("fmt")
	auth_data = obj.get("authData")
	statement = obj.get("attStmt", {})
	if not isinstance(fmt, str) or not isinstance(auth_data, bytes) or not isinstance(statement, dict):
		raise AuthenticatorDataError("Attestation object is missing 'fmt', 'authData' or 'attStmt'")

	return AttestationObject(Format=fmt, Statement=statement, AuthData=auth_data)


def _decode_cbor_item(data: bytes, offset: int) -> tuple[typing.Any, int]:
	stream = io.BytesIO(data[offset:])
	try:
		item = cbor2.CBORDecoder(stream).decode()
	except (cbor2.CBORDecodeError, EOFError) as e:
		raise AuthenticatorDataError("Malformed CBOR item at offset {}".format(offset)) from e
	return item, stream.tell()
