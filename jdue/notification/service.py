import logging
import typing

import asab
import asab.metrics

from .providers.abc import NotificationProviderABC
from .providers.log import LogNotificationProvider
from .. import exceptions

#

L = logging.getLogger(__name__)

#


class NotificationService(asab.Service):
	"""
	Deliver task notifications to users through all configured channels.

	The log channel is always active. Other channels are enabled by their config sections:
	```ini
	[jdue:notification:webhook]
	url=https://push.example.com/notify

	[jdue:notification:smtp]
	host=smtp.example.com
	sender=jdue@example.com
	```
	"""

	def __init__(self, app, service_name="jdue.NotificationService"):
		super().__init__(app, service_name)
		self.MetricsService = app.get_service("asab.MetricsService")

		self.Providers: typing.List[NotificationProviderABC] = [
			LogNotificationProvider(app, "jdue:notification:log")
		]
		relevant_sections = [s for s in asab.Config.sections() if s.startswith("jdue:notification:")]
		for config_section_name in relevant_sections:
			provider_name = config_section_name.rsplit(":", 1)[-1]
			if provider_name == "log":
				continue
			elif provider_name == "webhook":
				from .providers.webhook import WebhookNotificationProvider
				self.Providers.append(WebhookNotificationProvider(app, config_section_name))
			elif provider_name == "smtp":
				from .providers.smtp import SMTPNotificationProvider
				self.Providers.append(SMTPNotificationProvider(app, config_section_name))
			else:
				L.error("Unsupported notification provider: '{}'".format(config_section_name))

		self.NotificationCounter: asab.metrics.Counter = self.MetricsService.create_counter(
			"notifications",
			tags={"help": "Number of delivered and failed task notifications."},
			init_values={"sent": 0, "failed": 0})


	async def notify(self, user: dict, title: str, body: str, tag: str) -> bool:
		"""
		Send the notification on every channel.

		Delivery failures are logged and dropped; they are never retried and never raised.
		Return True if at least one channel delivered the notification.
		"""
		delivered = False
		for provider in self.Providers:
			try:
				await provider.send(user=user, title=title, body=body, tag=tag)
			except exceptions.NotificationDeliveryError as e:
				self.NotificationCounter.add("failed", 1)
				L.warning("Notification delivery failed: {}".format(e), struct_data={
					"uid": user["_id"], "channel": provider.Channel, "tag": tag})
				continue
			delivered = True
			self.NotificationCounter.add("sent", 1)

		return delivered
