import logging

import aiohttp

from .abc import NotificationProviderABC
from ... import exceptions

#

L = logging.getLogger(__name__)

#


class WebhookNotificationProvider(NotificationProviderABC):
	"""
	POST notifications as JSON to a configured URL, e.g. a push gateway.

	Request body:
		{"user": "<user ID>", "username": "...", "title": "...", "body": "...", "tag": "..."}
	"""

	Channel = "webhook"

	ConfigDefaults = {
		"url": "",
		"timeout": "10",  # seconds
	}

	def __init__(self, app, config_section_name, config=None):
		super().__init__(app, config_section_name, config=config)
		self.URL = self.Config.get("url")
		if len(self.URL) == 0:
			raise ValueError("No 'url' specified in [{}] config section.".format(config_section_name))
		self.Timeout = aiohttp.ClientTimeout(total=self.Config.getint("timeout"))


	async def send(self, *, user: dict, title: str, body: str, tag: str):
		payload = {
			"user": user["_id"],
			"username": user.get("username"),
			"title": title,
			"body": body,
			"tag": tag,
		}
		try:
			async with aiohttp.ClientSession(timeout=self.Timeout) as session:
				async with session.post(self.URL, json=payload) as resp:
					if resp.status // 100 != 2:
						text = await resp.text()
						raise exceptions.NotificationDeliveryError(
							"Webhook responded with {}: {}".format(resp.status, text[:200]),
							channel=self.Channel)
		except (aiohttp.ClientError, TimeoutError) as e:
			raise exceptions.NotificationDeliveryError(
				"Webhook is unreachable ({}).".format(e.__class__.__name__),
				channel=self.Channel) from e
