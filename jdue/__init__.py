from .app import JDueApplication

import asab

asab.Config.add_defaults({
	"general": {
		# Public URL of the web application, used to derive the WebAuthn origin and RP ID
		"public_url": "",
	},

	"web": {
		"listen": "8080",
	},

	"jdue": {
		# Path to the PEM file with the EC P-256 key that signs session tokens
		# Defaults to "private-key.pem" next to the config file
		"private_key": "",
	},

	"jdue:session": {
		# Lifetime of a session token
		"expiration": "24 h",
	},

	"jdue:user": {
		# User storage: "mongodb" or "dict" (in-memory, for development)
		"provider": "mongodb",
		"users_collection": "u",
	},

	"jdue:reminder": {
		"enabled": "yes",
		# Time zone in which task due dates are interpreted
		"timezone": "UTC",
	},

	"jdue:provisioning": {
		# Specifies which environment variable will activate provisioning mode when set to true
		"env_variable_name": "JDUE_PROVISIONING",
		"admin_username": "provisioning-admin",
	},
})

__all__ = [
	"JDueApplication",
]
