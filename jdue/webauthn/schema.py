_PUBLIC_KEY_CREDENTIAL = {
	"type": "object",
	"required": [
		"id",
		"rawId",
		"response",
		"type",
	],
	"properties": {
		"id": {
			# Credential ID, base64url
			"type": "string"
		},
		"rawId": {
			# The ID again, as sent by the browser
			"type": "string"
		},
		"response": {
			# Authenticator response, all members base64url-encoded
			"type": "object",
		},
		"type": {
			"type": "string",
			"enum": ["public-key"],
		},
	}
}


REGISTER_PASSKEY = {
	"type": "object",
	"required": [
		"ceremony_id",
		"credential",
	],
	"properties": {
		"ceremony_id": {"type": "string"},
		"credential": _PUBLIC_KEY_CREDENTIAL,
		"name": {
			"type": "string",
			"minLength": 1,
			"maxLength": 128,
		},
	}
}


PASSKEY_LOGIN = {
	"type": "object",
	"required": [
		"ceremony_id",
		"credential",
	],
	"properties": {
		"ceremony_id": {"type": "string"},
		"credential": _PUBLIC_KEY_CREDENTIAL,
	}
}


UPDATE_PASSKEY = {
	"type": "object",
	"required": [
		"name",
	],
	"properties": {
		"name": {
			"type": "string",
			"minLength": 1,
			"maxLength": 128,
		},
	}
}
