from .service import SessionService, SessionContext
from .handler import SessionHandler

__all__ = [
	"SessionService",
	"SessionContext",
	"SessionHandler",
]
