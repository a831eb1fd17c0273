import os
import unittest
from unittest.mock import MagicMock, patch


class AppPublicUrlTestCase(unittest.TestCase):
	"""
	Public URL resolution and provisioning switch of JDueApplication.
	"""
	maxDiff = None

	def setUp(self):
		self.patches = []

	def tearDown(self):
		for patcher in self.patches:
			patcher.stop()

	def _create_mock_app(self, config_values, env=None):
		def config_get(section, key, fallback=None):
			return config_values.get((section, key), fallback)

		patcher = patch("asab.Config.get", side_effect=config_get)
		patcher.start()
		self.patches.append(patcher)

		patcher = patch.dict(os.environ, env or {}, clear=False)
		patcher.start()
		self.patches.append(patcher)
		if env is None:
			os.environ.pop("PUBLIC_URL", None)
			os.environ.pop("JDUE_PROVISIONING", None)

		with patch("jdue.app.asab.Application.__init__", return_value=None):
			from jdue.app import JDueApplication
			app = object.__new__(JDueApplication)
			app.PublicUrl = None
			app.Args = MagicMock(provisioning=False)
			return app

	def test_public_url_from_config(self):
		app = self._create_mock_app({("general", "public_url"): "https://todo.example"})
		app._prepare_public_url()
		self.assertEqual(app.PublicUrl, "https://todo.example/")

	def test_public_url_from_env(self):
		app = self._create_mock_app({("general", "public_url"): ""}, env={"PUBLIC_URL": "https://env.example/"})
		app._prepare_public_url()
		self.assertEqual(app.PublicUrl, "https://env.example/")

	def test_public_url_fallback(self):
		app = self._create_mock_app({("general", "public_url"): ""})
		app._prepare_public_url()
		self.assertEqual(app.PublicUrl, "http://localhost/")

	def test_public_url_must_be_absolute(self):
		app = self._create_mock_app({("general", "public_url"): "todo.example"})
		with self.assertRaises(ValueError) as context:
			app._prepare_public_url()
		self.assertIn("public_url", str(context.exception))

	def test_provisioning_switch(self):
		config = {("jdue:provisioning", "env_variable_name"): "JDUE_PROVISIONING"}

		app = self._create_mock_app(config)
		self.assertFalse(app._should_activate_provisioning())

		app.Args = MagicMock(provisioning=True)
		self.assertTrue(app._should_activate_provisioning())

	def test_provisioning_switch_env(self):
		config = {("jdue:provisioning", "env_variable_name"): "JDUE_PROVISIONING"}
		app = self._create_mock_app(config, env={"JDUE_PROVISIONING": "yes"})
		self.assertTrue(app._should_activate_provisioning())
