import logging

import cbor2
import cryptography.exceptions
import cryptography.hazmat.primitives.hashes
import cryptography.hazmat.primitives.serialization
import cryptography.hazmat.primitives.asymmetric.ec
import cryptography.hazmat.primitives.asymmetric.ed25519
import cryptography.hazmat.primitives.asymmetric.padding
import cryptography.hazmat.primitives.asymmetric.rsa
from webauthn.helpers.cose import COSEAlgorithmIdentifier, COSECRV, COSEKTY, COSEKey

#

L = logging.getLogger(__name__)

#

SUPPORTED_ALGORITHMS = [
	COSEAlgorithmIdentifier.ECDSA_SHA_256,
	COSEAlgorithmIdentifier.EDDSA,
	COSEAlgorithmIdentifier.RSASSA_PKCS1_v1_5_SHA_256,
]

_EC = cryptography.hazmat.primitives.asymmetric.ec
_RSA = cryptography.hazmat.primitives.asymmetric.rsa
_ED25519 = cryptography.hazmat.primitives.asymmetric.ed25519
_SERIALIZATION = cryptography.hazmat.primitives.serialization
_SHA256 = cryptography.hazmat.primitives.hashes.SHA256


class COSEKeyError(ValueError):
	pass


def cose_key_to_spki(cose_key: bytes) -> tuple[int, bytes]:
	"""
	Convert a COSE_Key (as embedded in attested credential data) into
	a DER-encoded SubjectPublicKeyInfo and its COSE algorithm identifier.

	https://www.rfc-editor.org/rfc/rfc9053#section-7
	"""
	try:
		key_map = cbor2.loads(cose_key)
	except (cbor2.CBORDecodeError, EOFError) as e:
		raise COSEKeyError("COSE key is not valid CBOR") from e
	if not isinstance(key_map, dict):
		raise COSEKeyError("COSE key is not a CBOR map")

	try:
		algorithm = COSEAlgorithmIdentifier(key_map.get(COSEKey.ALG))
	except ValueError:
		raise COSEKeyError("Unknown COSE algorithm: {!r}".format(key_map.get(COSEKey.ALG)))
	if algorithm not in SUPPORTED_ALGORITHMS:
		raise COSEKeyError("Unsupported COSE algorithm: {}".format(algorithm.name))

	kty = key_map.get(COSEKey.KTY)
	if algorithm == COSEAlgorithmIdentifier.ECDSA_SHA_256:
		public_key = _ec2_public_key(kty, key_map)
	elif algorithm == COSEAlgorithmIdentifier.EDDSA:
		public_key = _okp_public_key(kty, key_map)
	else:
		public_key = _rsa_public_key(kty, key_map)

	spki = public_key.public_bytes(
		encoding=_SERIALIZATION.Encoding.DER,
		format=_SERIALIZATION.PublicFormat.SubjectPublicKeyInfo,
	)
	return int(algorithm), spki


def verify_signature(spki: bytes, algorithm: int, signature: bytes, data: bytes) -> bool:
	"""
	Verify `signature` over `data` with a stored SubjectPublicKeyInfo key.
	"""
	try:
		public_key = _SERIALIZATION.load_der_public_key(spki)
	except ValueError as e:
		raise COSEKeyError("Stored public key cannot be loaded") from e

	try:
		if algorithm == COSEAlgorithmIdentifier.ECDSA_SHA_256:
			if not isinstance(public_key, _EC.EllipticCurvePublicKey):
				raise COSEKeyError("Algorithm ES256 requires an EC key")
			public_key.verify(signature, data, _EC.ECDSA(_SHA256()))
		elif algorithm == COSEAlgorithmIdentifier.EDDSA:
			if not isinstance(public_key, _ED25519.Ed25519PublicKey):
				raise COSEKeyError("Algorithm EdDSA requires an Ed25519 key")
			public_key.verify(signature, data)
		elif algorithm == COSEAlgorithmIdentifier.RSASSA_PKCS1_v1_5_SHA_256:
			if not isinstance(public_key, _RSA.RSAPublicKey):
				raise COSEKeyError("Algorithm RS256 requires an RSA key")
			public_key.verify(
				signature, data,
				cryptography.hazmat.primitives.asymmetric.padding.PKCS1v15(),
				_SHA256()
			)
		else:
			raise COSEKeyError("Unsupported COSE algorithm: {!r}".format(algorithm))
	except cryptography.exceptions.InvalidSignature:
		return False

	return True


def _ec2_public_key(kty, key_map: dict):
	if kty != COSEKTY.EC2:
		raise COSEKeyError("ES256 key must have key type EC2, not {!r}".format(kty))
	if key_map.get(COSEKey.CRV) != COSECRV.P256:
		raise COSEKeyError("ES256 key must be on the P-256 curve")
	x = key_map.get(COSEKey.X)
	y = key_map.get(COSEKey.Y)
	if not isinstance(x, bytes) or not isinstance(y, bytes) or len(x) != 32 or len(y) != 32:
		raise COSEKeyError("Invalid EC2 point coordinates")
	try:
		# Uncompressed SEC1 point; rejects points that are not on the curve
		return _EC.EllipticCurvePublicKey.from_encoded_point(_EC.SECP256R1(), b"\x04" + x + y)
	except ValueError as e:
		raise COSEKeyError("EC2 point is not on the P-256 curve") from e


def _okp_public_key(kty, key_map: dict):
	if kty != COSEKTY.OKP:
		raise COSEKeyError("EdDSA key must have key type OKP, not {!r}".format(kty))
	if key_map.get(COSEKey.CRV) != COSECRV.ED25519:
		raise COSEKeyError("Only Ed25519 OKP keys are supported")
	x = key_map.get(COSEKey.X)
	if not isinstance(x, bytes) or len(x) != 32:
		raise COSEKeyError("Invalid Ed25519 public key")
	return _ED25519.Ed25519PublicKey.from_public_bytes(x)


def _rsa_public_key(kty, key_map: dict):
	if kty != COSEKTY.RSA:
		raise COSEKeyError("RS256 key must have key type RSA, not {!r}".format(kty))
	n = key_map.get(COSEKey.N)
	e = key_map.get(COSEKey.E)
	if not isinstance(n, bytes) or not isinstance(e, bytes):
		raise COSEKeyError("Invalid RSA public key parameters")
	try:
		return _RSA.RSAPublicNumbers(
			int.from_bytes(e, "big"),
			int.from_bytes(n, "big"),
		).public_key()
	except ValueError as err:
		raise COSEKeyError("Invalid RSA public key") from err
