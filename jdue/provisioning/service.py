import logging

import asab
import asab.exceptions
import passlib.pwd

#

L = logging.getLogger(__name__)

#

_PROVISIONING_INTRO_MESSAGE = """

JDue is running in provisioning mode.

Use the following credentials to log in:

	USERNAME:   {username}
	PASSWORD:   {password}

"""


class ProvisioningService(asab.Service):
	"""
	Create a temporary administrator account so that the first real users can be set up.
	The account is deleted when the application exits.
	"""

	def __init__(self, app, service_name="jdue.ProvisioningService"):
		super().__init__(app, service_name)
		self.AdminService = app.get_service("jdue.AdminService")
		self.UserService = app.get_service("jdue.UserService")
		self.AdminUsername = asab.Config.get("jdue:provisioning", "admin_username")
		self.AdminUserId = None


	async def initialize(self, app):
		await super().initialize(app)

		existing_user_id = await self.UserService.Provider.locate(self.AdminUsername)
		if existing_user_id is not None:
			L.warning("Removing leftover provisioning account.", struct_data={"uid": existing_user_id})
			await self.AdminService.delete_user(None, existing_user_id)

		password = passlib.pwd.genword(length=16)
		user = await self.AdminService.create_user(self.AdminUsername, password, is_admin=True)
		self.AdminUserId = user["_id"]
		L.log(asab.LOG_NOTICE, _PROVISIONING_INTRO_MESSAGE.format(username=self.AdminUsername, password=password))


	async def finalize(self, app):
		if self.AdminUserId is not None:
			try:
				await self.AdminService.delete_user(None, self.AdminUserId)
			except KeyError:
				L.error("Provisioning account already deleted.", struct_data={"uid": self.AdminUserId})
		await super().finalize(app)
