from .service import WebAuthnService
from .handler import WebAuthnHandler
from .verifier import CeremonyVerifier

__all__ = [
	"WebAuthnService",
	"WebAuthnHandler",
	"CeremonyVerifier",
]
