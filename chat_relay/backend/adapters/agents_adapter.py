from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List

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


log = logging.getLogger(__name__)


class StaticTokenCredential:
	"""azure-core TokenCredential over a caller-supplied bearer token."""

	def __init__(self, credential: BearerToken):
		self._credential = credential

	def get_token(self, *scopes: str, **_kwargs: Any):
		from azure.core.credentials import AccessToken
		from azure.core.exceptions import ClientAuthenticationError

		if self._credential.is_expired():
			raise ClientAuthenticationError(message="Access token has expired.")
		if scopes and not any(
			"cognitiveservices.azure.com" in scope or scope.endswith(".default") for scope in scopes
		):
			log.warning("requested token scope may not match Azure AI services: %s", ", ".join(scopes))
		return AccessToken(self._credential.token, int(self._credential.expires_at))

	def close(self) -> None:
		return None


def classify_remote_error(exc: Exception) -> RemoteError:
	name = exc.__class__.__name__
	status = getattr(exc, "status_code", None)
	if not isinstance(status, int):
		response = getattr(exc, "response", None)
		status = getattr(response, "status_code", None)
		status = status if isinstance(status, int) else None
	message = getattr(exc, "message", None)
	if not isinstance(message, str) or not message.strip():
		message = str(exc) or name
	message = message.strip().splitlines()[0]
	if name == "ClientAuthenticationError":
		return RemoteError(kind="auth", message=message, http_status=status or 401)
	if name == "ResourceNotFoundError":
		return RemoteError(kind="not_found", message=message, http_status=status or 404)
	if "Timeout" in name or isinstance(exc, TimeoutError):
		return RemoteError(kind="timeout", message=message, http_status=status)
	if name in {"ServiceRequestError", "ServiceResponseError"}:
		return RemoteError(kind="unavailable", message=message, http_status=status)
	return RemoteError(kind=kind_for_status(status), message=message, http_status=status)


def _azure_credential(credential: Credential):
	if isinstance(credential, BearerToken):
		return StaticTokenCredential(credential)
	if isinstance(credential, SharedKey):
		from azure.core.credentials import AzureKeyCredential

		return AzureKeyCredential(credential.key)
	if isinstance(credential, Ambient):
		from azure.identity import DefaultAzureCredential

		return DefaultAzureCredential()
	raise ConfigurationError(f"Unsupported credential type: {type(credential).__name__}")


class AgentsBackend:
	"""Azure AI Foundry project agents (threads/messages/runs under `client.agents`)."""

	newest_first = False

	def __init__(self, agents_client: Any, *, owner: Any = None):
		self._agents = agents_client
		self._owner = owner

	@classmethod
	def from_settings(cls, settings: Settings, credential: Credential) -> "AgentsBackend":
		try:
			from azure.ai.projects import AIProjectClient
		except ImportError as exc:
			raise ConfigurationError(
				"Azure AI Projects SDK not installed. Add 'azure-ai-projects' dependency."
			) from exc
		try:
			project = AIProjectClient(endpoint=settings.endpoint, credential=_azure_credential(credential))
		except (TypeError, ValueError) as exc:
			raise ConfigurationError(f"Failed to initialize Azure client: {exc}") from exc
		agents = getattr(project, "agents", None)
		if agents is None or getattr(agents, "threads", None) is None:
			raise ConfigurationError("Azure client not properly initialized - missing agents.threads API.")
		return cls(agents, owner=project)

	def create_thread(self) -> Thread:
		try:
			thread = self._agents.threads.create()
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise ThreadCreationError("Failed to create thread", detail=remote.message, remote=remote) from exc
		thread_id = getattr(thread, "id", None)
		if not thread_id:
			raise ThreadCreationError("Failed to create thread", detail="Thread created but no ID returned")
		return Thread(id=str(thread_id), created_at=datetime.now(timezone.utc))

	def post_message(self, thread_id: str, role: str, content: str) -> None:
		try:
			self._agents.messages.create(thread_id=thread_id, role=role, content=content)
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise MessagePostError("Failed to post message", detail=remote.message, remote=remote) from exc

	def start_run(self, thread_id: str, agent_id: str) -> RemoteRun:
		try:
			run = self._agents.runs.create(thread_id=thread_id, agent_id=agent_id)
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise RunStartError("Failed to start run", detail=remote.message, remote=remote) from exc
		return self._to_run(run)

	def get_run(self, thread_id: str, run_id: str) -> RemoteRun:
		try:
			run = self._agents.runs.get(thread_id=thread_id, run_id=run_id)
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise RunStatusError("Failed to fetch run status", detail=remote.message, remote=remote) from exc
		return self._to_run(run)

	def list_messages(self, thread_id: str) -> List[RemoteMessage]:
		try:
			pages = self._agents.messages.list(thread_id=thread_id, order="asc")
			return [
				RemoteMessage(
					id=str(item.id),
					role=enum_text(item.role),
					text=first_text(getattr(item, "content", None)),
					created_at=as_datetime(getattr(item, "created_at", None)),
				)
				for item in pages
			]
		except Exception as exc:
			remote = classify_remote_error(exc)
			raise MessageListError("Failed to get messages", detail=remote.message, remote=remote) from exc

	def close(self) -> None:
		closer = getattr(self._owner, "close", None)
		if callable(closer):
			closer()

	@staticmethod
	def _to_run(run: Any) -> RemoteRun:
		return RemoteRun(
			id=str(run.id),
			status=enum_text(run.status),
			last_error=error_detail(getattr(run, "last_error", None)),
		)
