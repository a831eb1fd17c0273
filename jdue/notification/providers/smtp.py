import logging
import email.mime.text

import aiosmtplib
import asab

from .abc import NotificationProviderABC
from ... import exceptions

#

L = logging.getLogger(__name__)

#


class SMTPNotificationProvider(NotificationProviderABC):
	"""
	Send notifications by e-mail.
	Users without an e-mail address are skipped.
	"""

	Channel = "email"

	ConfigDefaults = {
		"host": "localhost",
		"port": "",
		"user": "",
		"password": "",
		"sender": "jdue@localhost",
		"ssl": "no",  # Use TLS/SSL for connection
		"starttls": "yes",  # Use STARTTLS protocol
	}

	def __init__(self, app, config_section_name, config=None):
		super().__init__(app, config_section_name, config=config)

		self.SSL = self.Config.getboolean("ssl")
		self.StartTLS = self.Config.getboolean("starttls")
		self.Host = self.Config.get("host")
		self.User = self.Config.get("user")
		self.Password = self.Config.get("password")
		self.Sender = self.Config.get("sender")

		port = self.Config.get("port")
		if len(port) == 0:
			if self.SSL:
				self.Port = 465
			elif self.StartTLS:
				self.Port = 587
			else:
				self.Port = 25
		else:
			self.Port = int(port)


	async def send(self, *, user: dict, title: str, body: str, tag: str):
		to = user.get("email")
		if not to or to.endswith("@example.local"):
			L.debug("User has no deliverable e-mail address.", struct_data={"uid": user["_id"]})
			return

		msg = email.mime.text.MIMEText(body, "plain", "utf-8")
		msg["Subject"] = title
		msg["From"] = self.Sender
		msg["To"] = to

		try:
			result = await aiosmtplib.send(
				msg,
				sender=self.Sender,
				recipients=[to],
				hostname=self.Host,
				port=self.Port,
				username=self.User if len(self.User) > 0 else None,
				password=self.Password if len(self.User) > 0 else None,
				use_tls=self.SSL,
				start_tls=self.StartTLS
			)
		except (aiosmtplib.SMTPException, OSError) as e:
			raise exceptions.NotificationDeliveryError(
				"Failed to send e-mail ({}).".format(e.__class__.__name__),
				channel=self.Channel) from e

		L.log(asab.LOG_NOTICE, "Email sent", struct_data={"uid": user["_id"], "tag": tag, "result": result[1]})
