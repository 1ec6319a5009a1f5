from __future__ import annotations

import logging
from concurrent.futures import Future
from threading import Lock
from typing import Optional

from chat_relay.backend.adapters.base import RunBackend, Thread
from chat_relay.backend.errors import RelayError, ThreadCreationError


log = logging.getLogger(__name__)


class ThreadSession:
	"""Owns the remote conversation thread for one chat session.

	The thread is created on first use. Callers racing on an empty session
	share a single in-flight creation; a failed creation is reported to all of
	them and is not retried here.
	"""

	def __init__(self, backend: RunBackend, thread_id: str | None = None):
		self._backend = backend
		self._lock = Lock()
		self._pending: Optional[Future] = None
		self._thread: Optional[Thread] = Thread(id=thread_id) if thread_id else None
		if self._thread is not None:
			log.info("resuming thread %s", thread_id)

	@property
	def thread(self) -> Optional[Thread]:
		return self._thread

	@property
	def thread_id(self) -> Optional[str]:
		return self._thread.id if self._thread is not None else None

	@property
	def has_thread(self) -> bool:
		return self._thread is not None

	def ensure_thread(self) -> str:
		with self._lock:
			if self._thread is not None:
				return self._thread.id
			pending = self._pending
			owner = pending is None
			if owner:
				pending = self._pending = Future()
		if not owner:
			return pending.result()

		try:
			thread = self._backend.create_thread()
		except RelayError as exc:
			self._abandon(pending, exc)
			raise
		except Exception as exc:
			error = ThreadCreationError("Failed to create thread", detail=str(exc) or type(exc).__name__)
			self._abandon(pending, error)
			raise error from exc
		except BaseException as exc:
			self._abandon(pending, exc)
			raise

		with self._lock:
			self._thread = thread
			self._pending = None
		log.info("created thread %s", thread.id)
		pending.set_result(thread.id)
		return thread.id

	def _abandon(self, pending: Future, error: BaseException) -> None:
		with self._lock:
			self._pending = None
		log.warning("thread creation failed: %s", error)
		pending.set_exception(error)
