from .service import ReminderService

__all__ = [
	"ReminderService",
]
