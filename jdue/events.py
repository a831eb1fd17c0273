class EventTypes:
	USER_CREATED = "user_created"
	USER_UPDATED = "user_updated"

	PASSKEY_REGISTERED = "passkey_registered"
	PASSKEY_UPDATED = "passkey_updated"

	WEBAUTHN_CHALLENGE_CREATED = "webauthn_challenge_created"

	PROJECT_CREATED = "project_created"

	TASK_CREATED = "task_created"
	TASK_UPDATED = "task_updated"
	TASK_TOGGLED = "task_toggled"
	TASK_NOTIFIED = "task_notified"
