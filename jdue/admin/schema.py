CREATE_USER = {
	"type": "object",
	"required": ["username", "password"],
	"properties": {
		"username": {
			"type": "string",
			"minLength": 1,
			"maxLength": 128,
		},
		"password": {
			"type": "string",
			"minLength": 1,
		},
		"email": {"type": "string"},
		"isAdmin": {"type": "boolean"},
	},
}

SET_STATUS = {
	"type": "object",
	"required": ["status"],
	"properties": {
		"status": {
			"type": "string",
			"enum": ["active", "banned", "deactivated"],
		},
	},
}
