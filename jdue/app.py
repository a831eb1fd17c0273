import os
import logging

import jwcrypto.jwk

import asab
import asab.web
import asab.metrics
import asab.web.rest
import asab.storage

from . import middleware

#

L = logging.getLogger(__name__)

#


class JDueApplication(asab.Application):

	def __init__(self):
		super().__init__()
		self.Provisioning = self._should_activate_provisioning()
		self.PrivateKey = self._load_private_key()

		self.PublicUrl = None
		self._prepare_public_url()

		# Load modules
		self.add_module(asab.web.Module)
		self.add_module(asab.storage.Module)
		self.add_module(asab.metrics.Module)

		# Locate web service
		self.WebService = self.get_service("asab.WebService")

		self.WebContainer = asab.web.WebContainer(self.WebService, "web")
		self.WebContainer.WebApp.middlewares.append(asab.web.rest.JsonExceptionMiddleware)
		self.WebContainer.WebApp.middlewares.append(middleware.app_middleware_factory(self))

		from .session import SessionService, SessionHandler
		from .user import UserService, UserHandler
		self.SessionService = SessionService(self)
		self.UserService = UserService(self)
		self.SessionHandler = SessionHandler(self, self.SessionService)
		self.UserHandler = UserHandler(self, self.UserService)

		# depends on: SessionService
		self.WebContainer.WebApp.middlewares.append(middleware.auth_middleware_factory(self))

		# depends on: UserService, SessionService
		from .webauthn import WebAuthnService, WebAuthnHandler
		self.WebAuthnService = WebAuthnService(self)
		self.WebAuthnHandler = WebAuthnHandler(self, self.WebAuthnService)

		from .task import TaskService, TaskHandler
		# Not `self.TaskService`, which is the asab task scheduler
		self.TodoService = TaskService(self)
		self.TaskHandler = TaskHandler(self, self.TodoService)

		# depends on: UserService, TaskService
		from .admin import AdminService, AdminHandler
		self.AdminService = AdminService(self)
		self.AdminHandler = AdminHandler(self, self.AdminService)

		from .notification import NotificationService
		self.NotificationService = NotificationService(self)

		# depends on: UserService, TaskService, NotificationService
		from .reminder import ReminderService
		self.ReminderService = ReminderService(self)

		# depends on: AdminService
		if self.Provisioning:
			from .provisioning import ProvisioningService
			self.ProvisioningService = ProvisioningService(self)


	def _should_activate_provisioning(self):
		# Activate via argparse flag
		if hasattr(self.Args, "provisioning") and self.Args.provisioning:
			return True

		# Activate via env variable
		provisioning_env_name = asab.Config.get("jdue:provisioning", "env_variable_name")
		if provisioning_env_name is not None \
			and os.getenv(provisioning_env_name, "false").lower() in ["true", "yes", "1"]:
			return True

		return False


	def _load_private_key(self):
		"""
		Load private key from file.
		If it does not exist and the app runs in provisioning mode, generate a new one and write it to file.
		"""
		private_key_path = asab.Config.get("jdue", "private_key", fallback="")
		if len(private_key_path) == 0:
			# Use config folder
			private_key_path = os.path.join(
				os.path.dirname(asab.Config.get("general", "config_file")),
				"private-key.pem"
			)
			L.info(
				"JDue private key file not specified. Defaulting to '{}'.".format(private_key_path)
			)

		if os.path.isfile(private_key_path):
			with open(private_key_path, "rb") as f:
				private_key = jwcrypto.jwk.JWK.from_pem(f.read())
		elif self.Provisioning:
			# Generate a new private key
			L.log(
				asab.LOG_NOTICE,
				"JDue private key file does not exist. Generating a new one.",
				struct_data={"path": private_key_path}
			)
			private_key = self._generate_private_key(private_key_path)
		else:
			raise FileNotFoundError(
				"Private key file '{}' does not exist. "
				"Run the app in provisioning mode to generate a new private key.".format(private_key_path)
			)

		assert private_key.key_type == "EC"
		assert private_key.key_curve == "P-256"
		return private_key


	def _generate_private_key(self, private_key_path):
		assert not os.path.isfile(private_key_path)

		import cryptography.hazmat.primitives.serialization
		import cryptography.hazmat.primitives.asymmetric.ec
		_private_key = cryptography.hazmat.primitives.asymmetric.ec.generate_private_key(
			cryptography.hazmat.primitives.asymmetric.ec.SECP256R1()
		)
		# Serialize into PEM
		private_pem = _private_key.private_bytes(
			encoding=cryptography.hazmat.primitives.serialization.Encoding.PEM,
			format=cryptography.hazmat.primitives.serialization.PrivateFormat.PKCS8,
			encryption_algorithm=cryptography.hazmat.primitives.serialization.NoEncryption()
		)
		with open(private_key_path, "wb") as f:
			f.write(private_pem)
		L.log(
			asab.LOG_NOTICE,
			"New private key written to '{}'.".format(private_key_path)
		)
		return jwcrypto.jwk.JWK.from_pem(private_pem)


	def create_argument_parser(
		self,
		prog=None,
		usage=None,
		description=None,
		epilog=None,
		prefix_chars='-',
		fromfile_prefix_chars=None,
		argument_default=None,
		conflict_handler='error',
		add_help=True
	):
		parser = super().create_argument_parser(
			prog=prog,
			usage=usage,
			description=description,
			epilog=epilog,
			prefix_chars=prefix_chars,
			fromfile_prefix_chars=fromfile_prefix_chars,
			argument_default=argument_default,
			conflict_handler=conflict_handler,
			add_help=add_help
		)
		parser.add_argument("--provisioning", help="run JDue in provisioning mode", action="store_true")
		return parser


	def _prepare_public_url(self):
		self.PublicUrl = asab.Config.get("general", "public_url")
		if not self.PublicUrl:
			# Try to load config from env variable
			env_public_url = os.getenv("PUBLIC_URL")
			if env_public_url:
				self.PublicUrl = env_public_url
			else:
				self.PublicUrl = "http://localhost"
				L.log(asab.LOG_NOTICE, "No public server URL configured. Falling back to {!r}.".format(self.PublicUrl))

		self.PublicUrl = self.PublicUrl.rstrip("/") + "/"
		if not (self.PublicUrl.startswith("https://") or self.PublicUrl.startswith("http://")):
			raise ValueError(
				"The value of 'public_url' in 'general' config section does not start "
				"with 'https://' or 'http://' ({!r}). Please supply a full absolute URL.".format(self.PublicUrl))
		if self.PublicUrl.startswith("http://"):
			L.warning(
				"JDue is running on plain insecure HTTP ({!r}). "
				"Browsers only allow passkeys on HTTPS origins and on localhost.".format(self.PublicUrl))
