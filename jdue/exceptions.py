import enum


class JDueError(Exception):
	"""
	Generic JDue error
	"""
	pass


class AccessDeniedError(JDueError):
	"""
	Subject is not authorized to access the requested object.

	Equivalent to HTTP 403 Forbidden.
	"""
	def __init__(self, message=None, *args, subject=None, resource=None):
		self.Subject = subject
		self.Resource = resource
		if message is None:
			if resource is not None and subject is not None:
				message = "Subject {!r} is not authorized to access {!r}.".format(subject, resource)
			elif resource is not None:
				message = "Not authorized to access {!r}.".format(resource)
			else:
				message = "Access denied."
		super().__init__(message, *args)


class UserNotFoundError(JDueError, KeyError):
	"""
	User not found
	"""
	def __init__(self, user_id, *args):
		self.UserId = user_id
		super().__init__("User {!r} not found".format(self.UserId), *args)


class ProjectNotFoundError(JDueError, KeyError):
	"""
	Project not found or not owned by the requesting user
	"""
	def __init__(self, project_id, *args):
		self.ProjectId = project_id
		super().__init__("Project {!r} not found".format(self.ProjectId), *args)


class TaskNotFoundError(JDueError, KeyError):
	"""
	Task not found or not owned by the requesting user
	"""
	def __init__(self, task_id, *args):
		self.TaskId = task_id
		super().__init__("Task {!r} not found".format(self.TaskId), *args)


class PasskeyNotFoundError(JDueError, KeyError):
	"""
	Passkey not registered for the user
	"""
	def __init__(self, passkey_id: bytes, *args):
		self.PasskeyId = passkey_id
		super().__init__("Passkey {!r} not found".format(self.PasskeyId.hex()), *args)


class SessionNotFoundError(JDueError, KeyError):
	"""
	Session token missing, corrupt, forged or expired
	"""
	pass


class InvalidCredentialsError(JDueError):
	"""
	Wrong username or password
	"""
	pass


class AccountInactiveError(JDueError):
	"""
	The account exists but its status does not allow login (banned, deactivated)
	"""
	def __init__(self, user_id, status, *args):
		self.UserId = user_id
		self.Status = status
		super().__init__("This account has been {}.".format(status), *args)


class CeremonyRejectedError(JDueError):
	"""
	WebAuthn registration or authentication response failed verification.

	The `Reason` attribute holds one of the `RejectReason` codes.
	"""
	def __init__(self, reason, message=None, *args):
		self.Reason = reason
		if message is None:
			message = "WebAuthn ceremony rejected: {}".format(reason)
		super().__init__(message, *args)


class RejectReason(enum.StrEnum):
	BAD_TYPE = "bad-type"
	BAD_ORIGIN = "bad-origin"
	BAD_CHALLENGE = "bad-challenge"
	BAD_RP_ID_HASH = "bad-rp-id-hash"
	USER_NOT_PRESENT = "user-not-present"
	USER_HANDLE_MISMATCH = "user-handle-mismatch"
	SIGNATURE_MISMATCH = "signature-mismatch"
	CREDENTIAL_NOT_FOUND = "credential-not-found"
	DUPLICATE_CREDENTIAL = "duplicate-credential"
	UNPARSEABLE_KEY = "unparseable-key"
	MALFORMED_RESPONSE = "malformed-response"


class RecurrenceMalformed(JDueError):
	"""
	Recurrence rule cannot be interpreted as stored; a fallback is applied instead.
	Only ever logged.
	"""
	pass


class NotificationDeliveryError(JDueError):
	"""
	Notification could not be delivered via a channel
	"""
	def __init__(self, message, *args, channel=None):
		self.Channel = channel
		super().__init__(message, *args)
