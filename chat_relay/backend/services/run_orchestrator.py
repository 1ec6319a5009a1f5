from __future__ import annotations

import logging
import time
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Event, Lock
from typing import Callable, Dict, Iterator, List, Optional

from chat_relay.backend import constants
from chat_relay.backend.adapters.base import RemoteMessage, RemoteRun, RunBackend
from chat_relay.backend.errors import (
	RunAbandonedError,
	RunCancelledError,
	RunExpiredError,
	RunFailedError,
	RunTimeoutError,
	TurnConflictError,
)
from chat_relay.backend.services.message_normalizer import normalize


log = logging.getLogger(__name__)

_CHAT_ROLES = {"user", "assistant"}


@dataclass(frozen=True)
class Message:
	id: str
	role: str
	content: str
	created_at: datetime

	def as_dict(self) -> Dict[str, str]:
		return {
			"id": self.id,
			"role": self.role,
			"content": self.content,
			"createdAt": self.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
		}


@dataclass(frozen=True)
class RunPolicy:
	poll_interval_s: float = constants.DEFAULT_POLL_INTERVAL_S
	timeout_s: float = constants.DEFAULT_RUN_TIMEOUT_S


class _TurnLock:
	def __init__(self) -> None:
		self.lock = Lock()


_TURN_LOCKS: "weakref.WeakValueDictionary[str, _TurnLock]" = weakref.WeakValueDictionary()
_TURN_LOCKS_GUARD = Lock()


@contextmanager
def turn_gate(thread_id: str, timeout_s: float) -> Iterator[None]:
	"""Allow one in-flight turn per remote thread across the whole process."""
	with _TURN_LOCKS_GUARD:
		gate = _TURN_LOCKS.get(thread_id)
		if gate is None:
			gate = _TurnLock()
			_TURN_LOCKS[thread_id] = gate
	if not gate.lock.acquire(timeout=timeout_s):
		raise TurnConflictError("Another message is still being processed in this conversation.")
	try:
		yield
	finally:
		gate.lock.release()


class RunOrchestrator:
	def __init__(
		self,
		backend: RunBackend,
		*,
		agent_id: str,
		policy: RunPolicy | None = None,
		clock: Callable[[], float] = time.monotonic,
		sleep: Callable[[float], None] = time.sleep,
	):
		self._backend = backend
		self._agent_id = agent_id
		self._policy = policy or RunPolicy()
		self._clock = clock
		self._sleep = sleep

	@property
	def policy(self) -> RunPolicy:
		return self._policy

	def submit_turn(self, thread_id: str, user_text: str, *, cancel_event: Event | None = None) -> List[Message]:
		gate_timeout = self._policy.timeout_s + self._policy.poll_interval_s
		with turn_gate(thread_id, gate_timeout):
			self._backend.post_message(thread_id, "user", user_text)
			run = self._backend.start_run(thread_id, self._agent_id)
			log.info("run %s started on thread %s status=%s", run.id, thread_id, run.status)
			run = self._wait_for_terminal(thread_id, run, cancel_event)
			self._raise_for_outcome(run)
			return self.fetch_messages(thread_id)

	def fetch_messages(self, thread_id: str) -> List[Message]:
		remote = self._backend.list_messages(thread_id)
		if self._backend.newest_first:
			remote = list(reversed(remote))
		ordered = sorted(remote, key=lambda item: item.created_at)
		messages = [self._to_message(item) for item in ordered if self._is_chat_text(item)]
		log.info("thread %s has %d messages", thread_id, len(messages))
		return messages

	def _wait_for_terminal(self, thread_id: str, run: RemoteRun, cancel_event: Optional[Event]) -> RemoteRun:
		deadline = self._clock() + self._policy.timeout_s
		polls = 0
		while run.is_active:
			remaining = deadline - self._clock()
			if remaining <= 0:
				log.error("run %s still %s after %d polls; giving up", run.id, run.status, polls)
				raise RunTimeoutError(
					"Assistant run timed out",
					detail=f"no terminal status within {self._policy.timeout_s:g}s (last status: {run.status})",
				)
			if self._pause(min(self._policy.poll_interval_s, remaining), cancel_event):
				log.warning("stopped polling run %s: caller went away", run.id)
				raise RunAbandonedError("Stopped waiting for the assistant run", detail=f"run {run.id} left running")
			previous = run.status
			run = self._backend.get_run(thread_id, run.id)
			polls += 1
			if run.status != previous:
				log.info("run %s status %s -> %s", run.id, previous, run.status)
		return run

	def _pause(self, seconds: float, cancel_event: Optional[Event]) -> bool:
		if cancel_event is not None:
			return cancel_event.wait(seconds)
		self._sleep(seconds)
		return False

	@staticmethod
	def _raise_for_outcome(run: RemoteRun) -> None:
		if run.status == "completed":
			return
		log.warning("run %s ended with status=%s error=%s", run.id, run.status, run.last_error)
		if run.status == "failed":
			raise RunFailedError("Run failed", detail=run.last_error or "Unknown error")
		if run.status == "cancelled":
			raise RunCancelledError("Assistant run was cancelled", detail=run.last_error)
		if run.status == "expired":
			raise RunExpiredError("Assistant run expired", detail=run.last_error)
		raise RunFailedError(
			"Run failed",
			detail=f"unexpected run status '{run.status}'" + (f": {run.last_error}" if run.last_error else ""),
		)

	@staticmethod
	def _is_chat_text(item: RemoteMessage) -> bool:
		return item.role in _CHAT_ROLES and item.text is not None

	@staticmethod
	def _to_message(item: RemoteMessage) -> Message:
		return Message(
			id=item.id,
			role=item.role,
			content=normalize(item.text or ""),
			created_at=item.created_at,
		)
