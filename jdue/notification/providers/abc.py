import abc
import logging

import asab

#

L = logging.getLogger(__name__)

#


class NotificationProviderABC(asab.Configurable, abc.ABC):

	Channel = None

	def __init__(self, app, config_section_name, config=None):
		super().__init__(config_section_name=config_section_name, config=config)
		self.App = app


	@abc.abstractmethod
	async def send(self, *, user: dict, title: str, body: str, tag: str):
		"""
		Deliver one notification to the user.
		Raise `NotificationDeliveryError` when the delivery fails.
		"""
		raise NotImplementedError()
