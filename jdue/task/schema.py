_RECURRENCE = {
	"type": ["object", "null"],
	"required": ["type"],
	"properties": {
		"type": {
			"type": "string",
			"enum": ["daily", "weekly", "monthly", "yearly"],
		},
		"daysOfWeek": {
			"type": "array",
			"items": {"type": "integer", "minimum": 0, "maximum": 6},
		},
		"yearlyInterval": {"type": "integer"},
	},
}

_REMINDER = {
	"type": "object",
	"required": ["value", "unit"],
	"properties": {
		"value": {"type": "integer", "minimum": 0},
		"unit": {
			"type": "string",
			"enum": ["minutes", "hours", "days"],
		},
		"isBefore": {"type": "boolean"},
	},
}

_TASK_PROPERTIES = {
	"projectId": {"type": "string"},
	"title": {"type": "string", "minLength": 1},
	"description": {"type": ["string", "null"]},
	"dueDate": {"type": ["string", "null"]},
	"priority": {
		"type": "string",
		"enum": ["Low", "Medium", "High"],
	},
	"isComplete": {"type": "boolean"},
	"recurrence": _RECURRENCE,
	"reminders": {
		"type": "array",
		"items": _REMINDER,
	},
	"labels": {
		"type": "array",
		"items": {"type": "string"},
	},
}

CREATE_TASK = {
	"type": "object",
	"required": ["projectId", "title"],
	"properties": _TASK_PROPERTIES,
}

UPDATE_TASK = {
	"type": "object",
	"properties": _TASK_PROPERTIES,
}

CREATE_PROJECT = {
	"type": "object",
	"required": ["name"],
	"properties": {
		"name": {"type": "string", "minLength": 1, "maxLength": 256},
	},
}

MARK_NOTIFICATION = {
	"type": "object",
	"required": ["notificationKey"],
	"properties": {
		"notificationKey": {"type": "string", "minLength": 1, "maxLength": 64},
	},
}
