UPDATE_ME = {
	"type": "object",
	"additionalProperties": False,
	"properties": {
		"email": {
			"type": "string",
			"minLength": 3,
			"maxLength": 254,
		},
		"currentPassword": {"type": "string"},
		"newPassword": {
			"type": "string",
			"minLength": 1,
		},
	},
}
