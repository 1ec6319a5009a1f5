from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional


ErrorKind = Literal[
	"auth",
	"forbidden",
	"not_found",
	"rate_limited",
	"timeout",
	"unavailable",
	"bad_request",
	"unknown",
]

_KIND_BY_STATUS = {
	400: "bad_request",
	401: "auth",
	403: "forbidden",
	404: "not_found",
	408: "timeout",
	429: "rate_limited",
	504: "timeout",
}

_HINTS = {
	401: "Check that your access token is valid and has the correct scope (https://cognitiveservices.azure.com/.default).",
	403: "Check that your account has the Contributor role on the Azure AI Project.",
	404: "Verify that the endpoint and agent/assistant id settings are correct.",
}


@dataclass(frozen=True)
class RemoteError:
	kind: ErrorKind
	message: str
	http_status: Optional[int] = None


def kind_for_status(status: Optional[int]) -> ErrorKind:
	if status is None:
		return "unknown"
	if status in _KIND_BY_STATUS:
		return _KIND_BY_STATUS[status]  # type: ignore[return-value]
	if status >= 500:
		return "unavailable"
	if status >= 400:
		return "bad_request"
	return "unknown"


class RelayError(Exception):
	status_code = 500
	code = "relay_error"

	def __init__(self, message: str, *, detail: str | None = None, remote: RemoteError | None = None):
		super().__init__(message)
		self.message = message
		self.detail = detail
		self.remote = remote
		# Set once the failing turn had a thread, so the client can keep it.
		self.thread_id: str | None = None

	def __str__(self) -> str:
		if self.detail and self.detail not in self.message:
			return f"{self.message}: {self.detail}"
		return self.message


class ConfigurationError(RelayError):
	code = "configuration_error"


class InvalidCredentialError(RelayError):
	status_code = 400
	code = "invalid_credential"


class ValidationError(RelayError):
	status_code = 400
	code = "validation_error"


class TurnConflictError(RelayError):
	status_code = 409
	code = "turn_conflict"


class NormalizationError(RelayError):
	code = "normalization_error"


class BackendError(RelayError):
	code = "backend_error"


class ThreadCreationError(BackendError):
	code = "thread_creation_failed"


class MessagePostError(BackendError):
	code = "message_post_failed"


class RunStartError(BackendError):
	code = "run_start_failed"


class RunStatusError(BackendError):
	code = "run_status_failed"


class RunFailedError(BackendError):
	code = "run_failed"


class RunCancelledError(BackendError):
	code = "run_cancelled"


class RunExpiredError(BackendError):
	code = "run_expired"


class RunTimeoutError(BackendError):
	code = "run_timeout"


class RunAbandonedError(BackendError):
	code = "run_abandoned"


class MessageListError(BackendError):
	code = "message_list_failed"


class OAuthExchangeError(RelayError):
	code = "oauth_exchange_failed"

	def __init__(self, message: str, *, status_code: int = 500, detail: str | None = None):
		super().__init__(message, detail=detail)
		self.status_code = status_code


class SpeechTokenError(RelayError):
	code = "speech_token_failed"


def user_message(exc: RelayError) -> str:
	"""Render an error for display, with a hint for auth and not-found failures."""
	text = str(exc)
	remote = exc.remote
	if remote is None or remote.http_status not in _HINTS:
		return text
	return f"{text} - {_HINTS[remote.http_status]}"
