from .service import AdminService
from .handler import AdminHandler

__all__ = [
	"AdminService",
	"AdminHandler",
]
