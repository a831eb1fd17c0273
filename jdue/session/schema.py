LOGIN = {
	"type": "object",
	"required": ["password"],
	"anyOf": [
		{"required": ["email"]},
		{"required": ["username"]},
	],
	"properties": {
		"email": {"type": "string", "minLength": 1},
		"username": {"type": "string", "minLength": 1},
		"password": {"type": "string", "minLength": 1},
	},
}

FORGOT_PASSWORD = {
	"type": "object",
	"required": ["email"],
	"properties": {
		"email": {"type": "string"},
	},
}
