from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from chat_relay.backend import constants
from chat_relay.backend.adapters.base import (
	RemoteMessage,
	RemoteRun,
	Thread,
	as_datetime,
	enum_text,
	error_detail,
	first_text,
)
from chat_relay.backend.config import Settings
from chat_relay.backend.errors import (
	ConfigurationError,
	MessageListError,
	MessagePostError,
	RemoteError,
	RunStartError,
	RunStatusError,
	ThreadCreationError,
	kind_for_status,
)
from chat_relay.backend.services.credentials import Ambient, BearerToken, Credential, SharedKey

_PAGE_SIZE = 100


def classify_remote_error(exc: Exception) -> RemoteError:
	name = exc.__class__.__name__
	status = getattr(exc, "status_code", None)
	status = status if isinstance(status, int) else None
	body = getattr(exc, "body", None)
	message = None
	if isinstance(body, dict):
		message = error_detail(body.get("error", body))
	if not message:
		message = getattr(exc, "message", None) or str(exc) or name
	message = str(message).strip().splitlines()[0]
	if isinstance(exc, TimeoutError) or name == "APITimeoutError":
		return RemoteError(kind="timeout", message=message, http_status=status)
	if name == "APIConnectionError":
		return RemoteError(kind="unavailable", message=message, http_status=status)
	if name == "AuthenticationError":
		return RemoteError(kind="auth", message=message, http_status=status or 401)
	if name == "PermissionDeniedError":
		return RemoteError(kind="forbidden", message=message, http_status=status or 403)
	if name == "NotFoundError":
		return RemoteError(kind="not_found", message=message, http_status=status or 404)
	if name == "RateLimitError":
		return RemoteError(kind="rate_limited", message=message, http_status=status or 429)
	return RemoteError(kind=kind_for_status(status), message=message, http_status=status)


def _client_kwargs(settings: Settings, credential: Credential) -> Dict[str, Any]:
	kwargs: Dict[str, Any] = {
		"azure_endpoint": settings.endpoint,
		"api_version": settings.api_version,
	}
	if isinstance(credential, SharedKey):
		kwargs["api_key"] = credential.key
	elif isinstance(credential, BearerToken):
		kwargs["azure_ad_token"] = credential.token
	elif isinstance(credential, Ambient):
		from azure.identity import DefaultAzureCredential, get_bearer_token_provider

		kwargs["azure_ad_token_provider"] = get_bearer_token_provider(
			DefaultAzureCredential(),
			constants.COGNITIVE_SERVICES_SCOPE,
		)
	else:
		raise ConfigurationError(f"Unsupported credential type: {type(credential).__name__}")
	return kwargs


class AssistantsBackend:
	"""Azure OpenAI Assistants API (`client.beta.threads`); lists newest first."""

	newest_first = True

	def __init__(self, client: Any):
		self._client = client

	@classmethod
	def from_settings(cls, settings: Settings, credential: Credential) -> "AssistantsBackend":
		try:
			from openai import AzureOpenAI
		except ImportError as exc:
			raise ConfigurationError("OpenAI SDK not installed. Add 'openai' dependency.") from exc
		try:
			client = AzureOpenAI(**_client_kwargs(settings, credential))
		except (TypeError, ValueError) as exc:
			raise ConfigurationError(f"Failed to initialize Azure OpenAI client: {exc}") from exc
		return cls(client)

	@property
	def _threads(self):
		return self._client.beta.threads

	def create_thread(self) -> Thread:
		try:
			thread = self._threads.create()
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise ThreadCreationError("Failed to create thread", detail=remote.message, remote=remote) from exc
		thread_id = getattr(thread, "id", None)
		if not thread_id:
			raise ThreadCreationError("Failed to create thread", detail="Invalid response")
		return Thread(id=str(thread_id), created_at=datetime.now(timezone.utc))

	def post_message(self, thread_id: str, role: str, content: str) -> None:
		try:
			self._threads.messages.create(thread_id, role=role, content=content)
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise MessagePostError("Failed to post message", detail=remote.message, remote=remote) from exc

	def start_run(self, thread_id: str, agent_id: str) -> RemoteRun:
		try:
			run = self._threads.runs.create(thread_id, assistant_id=agent_id)
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise RunStartError("Failed to start run", detail=remote.message, remote=remote) from exc
		return self._to_run(run)

	def get_run(self, thread_id: str, run_id: str) -> RemoteRun:
		try:
			run = self._threads.runs.retrieve(run_id, thread_id=thread_id)
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise RunStatusError("Failed to fetch run status", detail=remote.message, remote=remote) from exc
		return self._to_run(run)

	def list_messages(self, thread_id: str) -> List[RemoteMessage]:
		try:
			page = self._threads.messages.list(thread_id, order="desc", limit=_PAGE_SIZE)
			return [
				RemoteMessage(
					id=str(item.id),
					role=enum_text(item.role),
					text=first_text(getattr(item, "content", None)),
					created_at=as_datetime(getattr(item, "created_at", None)),
				)
				for item in page
			]
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise MessageListError("Failed to get messages", detail=remote.message, remote=remote) from exc

	def close(self) -> None:
		closer = getattr(self._client, "close", None)
		if callable(closer):
			closer()

	@staticmethod
	def _to_run(run: Any) -> RemoteRun:
		return RemoteRun(
			id=str(run.id),
			status=enum_text(run.status),
			last_error=error_detail(getattr(run, "last_error", None)),
		)
