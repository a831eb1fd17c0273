from .abc import NotificationProviderABC
from .log import LogNotificationProvider
from .webhook import WebhookNotificationProvider
from .smtp import SMTPNotificationProvider

__all__ = [
	"NotificationProviderABC",
	"LogNotificationProvider",
	"WebhookNotificationProvider",
	"SMTPNotificationProvider",
]
