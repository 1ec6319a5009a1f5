from __future__ import annotations

import logging
from threading import Event
from typing import Any, Callable, Iterable, List, Optional

from chat_relay.backend.adapters.base import RunBackend
from chat_relay.backend.adapters.factory import build_backend
from chat_relay.backend.config import Settings
from chat_relay.backend.errors import BackendError, ValidationError
from chat_relay.backend.services import credentials
from chat_relay.backend.services.credentials import Credential
from chat_relay.backend.services.run_orchestrator import Message, RunOrchestrator, RunPolicy
from chat_relay.backend.services.thread_session import ThreadSession


log = logging.getLogger(__name__)

BackendFactory = Callable[[Settings, Credential], RunBackend]


class ChatSession:
	"""Entry point for one conversation: send a turn, read the history.

	Instances are cheap and meant to be request scoped; conversation state
	lives on the remote thread, identified by ``thread_id``.
	"""

	def __init__(
		self,
		backend: RunBackend,
		credential: Credential,
		*,
		agent_id: str,
		policy: RunPolicy | None = None,
		thread_id: str | None = None,
	):
		self._backend = backend
		self._credential = credential
		self._threads = ThreadSession(backend, thread_id=thread_id)
		self._orchestrator = RunOrchestrator(backend, agent_id=agent_id, policy=policy)

	def __enter__(self) -> "ChatSession":
		return self

	def __exit__(self, exc_type, exc, tb) -> None:
		self.close()

	@property
	def thread_id(self) -> Optional[str]:
		return self._threads.thread_id

	@property
	def credential_mode(self) -> str:
		return self._credential.mode

	def send_turn(self, text: Any, *, cancel_event: Event | None = None) -> List[Message]:
		if not isinstance(text, str) or not text.strip():
			raise ValidationError("Message is required.")
		credentials.require_active(self._credential)
		thread_id = self._threads.ensure_thread()
		try:
			return self._orchestrator.submit_turn(thread_id, text.strip(), cancel_event=cancel_event)
		except BackendError as exc:
			exc.thread_id = thread_id
			raise

	def list_history(self) -> List[Message]:
		thread_id = self._threads.thread_id
		if thread_id is None:
			return []
		credentials.require_active(self._credential)
		return self._orchestrator.fetch_messages(thread_id)

	def close(self) -> None:
		self._backend.close()


def open_session(
	settings: Settings,
	*,
	access_token: Any = None,
	thread_id: str | None = None,
	backend_factory: BackendFactory = build_backend,
) -> ChatSession:
	credential = credentials.resolve(
		access_token,
		settings.api_key,
		allow_ambient=settings.allow_ambient_credential,
		token_lifetime_s=settings.token_lifetime_s,
	)
	backend = backend_factory(settings, credential)
	log.debug("opened %s session on thread %s", settings.backend_kind, thread_id or "<new>")
	return ChatSession(
		backend,
		credential,
		agent_id=settings.agent_id,
		policy=RunPolicy(poll_interval_s=settings.poll_interval_s, timeout_s=settings.run_timeout_s),
		thread_id=thread_id,
	)


def last_assistant_message(messages: Iterable[Message]) -> Optional[Message]:
	"""The reply the UI reads aloud when auto-speak is on."""
	latest = None
	for message in messages:
		if message.role == "assistant":
			latest = message
	return latest
