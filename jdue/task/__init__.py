from .service import TaskService
from .handler import TaskHandler

__all__ = [
	"TaskService",
	"TaskHandler",
]
