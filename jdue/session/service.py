import dataclasses
import datetime
import json
import logging

import asab
import asab.web.rest
import jwcrypto.common
import jwcrypto.jws
import jwcrypto.jwt

from .. import exceptions
from ..generic import utcnow

#

L = logging.getLogger(__name__)

#


@dataclasses.dataclass
class SessionContext:
	UserId: str
	IsAdmin: bool
	IssuedAt: datetime.datetime
	ExpiresAt: datetime.datetime


class SessionService(asab.Service):
	"""
	Issue and verify session tokens.

	Sessions are self-contained ES256 JWTs signed with the application private key;
	nothing is stored server-side.
	"""

	def __init__(self, app, service_name="jdue.SessionService"):
		super().__init__(app, service_name)
		self.PrivateKey = app.PrivateKey
		self.Expiration = datetime.timedelta(seconds=asab.Config.getseconds("jdue:session", "expiration"))
		self.JSONDumper = asab.web.rest.json.JSONDumper(pretty=False)


	def issue_session(self, user_id: str, claims: dict = None) -> str:
		"""
		Build a signed session token for the user.
		`claims` may carry additional public claims, e.g. `{"admin": True}`.
		"""
		now = utcnow()
		payload = {
			"sub": user_id,
			"iat": int(now.timestamp()),
			"exp": int((now + self.Expiration).timestamp()),
		}
		if claims is not None:
			payload.update(claims)

		header = {
			"alg": "ES256",
			"typ": "JWT",
		}
		token = jwcrypto.jwt.JWT(
			header=header,
			claims=self.JSONDumper(payload)
		)
		token.make_signed_token(self.PrivateKey)
		L.log(asab.LOG_NOTICE, "Session issued", struct_data={"uid": user_id})
		return token.serialize()


	def get_session(self, token_value: str) -> SessionContext:
		"""
		Verify the token and return the session it represents.
		"""
		try:
			token = jwcrypto.jwt.JWT(jwt=token_value, key=self.PrivateKey)
		except jwcrypto.jwt.JWTExpired as e:
			raise exceptions.SessionNotFoundError("Expired session token.") from e
		except jwcrypto.jws.InvalidJWSSignature as e:
			L.warning("Invalid session token signature.")
			raise exceptions.SessionNotFoundError("Invalid session token signature.") from e
		except (ValueError, jwcrypto.common.JWException) as e:
			raise exceptions.SessionNotFoundError("Corrupt session token.") from e

		claims = json.loads(token.claims)
		try:
			return SessionContext(
				UserId=claims["sub"],
				IsAdmin=bool(claims.get("admin", False)),
				IssuedAt=datetime.datetime.fromtimestamp(claims["iat"], datetime.timezone.utc),
				ExpiresAt=datetime.datetime.fromtimestamp(claims["exp"], datetime.timezone.utc),
			)
		except (KeyError, TypeError, ValueError) as e:
			raise exceptions.SessionNotFoundError("Incomplete session token claims.") from e
