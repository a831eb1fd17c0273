import logging

import asab

from .abc import NotificationProviderABC

#

L = logging.getLogger(__name__)

#


class LogNotificationProvider(NotificationProviderABC):
	"""
	Write notifications to the application log.
	"""

	Channel = "log"

	async def send(self, *, user: dict, title: str, body: str, tag: str):
		L.log(asab.LOG_NOTICE, "{}: {}".format(title, body), struct_data={
			"uid": user["_id"],
			"tag": tag,
		})
