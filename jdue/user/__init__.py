from .service import UserService
from .handler import UserHandler

__all__ = [
	"UserService",
	"UserHandler",
]
