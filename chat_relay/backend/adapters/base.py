from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Protocol


ACTIVE_RUN_STATUSES = frozenset({"queued", "in_progress", "cancelling"})


@dataclass(frozen=True)
class Thread:
	id: str
	created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RemoteRun:
	id: str
	status: str
	last_error: Optional[str] = None

	@property
	def is_active(self) -> bool:
		return self.status in ACTIVE_RUN_STATUSES


@dataclass(frozen=True)
class RemoteMessage:
	id: str
	role: str
	text: Optional[str]
	created_at: datetime


class RunBackend(Protocol):
	"""Job-style remote assistant API: submit, poll, fetch."""

	newest_first: bool

	def create_thread(self) -> Thread: ...

	def post_message(self, thread_id: str, role: str, content: str) -> None: ...

	def start_run(self, thread_id: str, agent_id: str) -> RemoteRun: ...

	def get_run(self, thread_id: str, run_id: str) -> RemoteRun: ...

	def list_messages(self, thread_id: str) -> List[RemoteMessage]: ...

	def close(self) -> None: ...


def enum_text(value: Any) -> str:
	raw = getattr(value, "value", value)
	return str(raw or "").strip().lower()


def as_datetime(value: Any) -> datetime:
	if isinstance(value, datetime):
		return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return datetime.fromtimestamp(value, tz=timezone.utc)
	if isinstance(value, str) and value.strip():
		parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
		return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
	return datetime.now(timezone.utc)


def field_value(obj: Any, name: str) -> Any:
	if isinstance(obj, dict):
		return obj.get(name)
	return getattr(obj, name, None)


def first_text(content: Any) -> Optional[str]:
	"""Return the first text part of a message content list."""
	for part in content or []:
		if enum_text(field_value(part, "type")) != "text":
			continue
		text = field_value(part, "text")
		value = field_value(text, "value") if text is not None else None
		if isinstance(value, str):
			return value
	return None


def error_detail(raw: Any) -> Optional[str]:
	"""Flatten a remote last_error payload into a single line."""
	if raw is None:
		return None
	if isinstance(raw, str):
		return raw.strip() or None
	message = field_value(raw, "message")
	code = field_value(raw, "code")
	if isinstance(message, str) and message.strip():
		if isinstance(code, str) and code.strip():
			return f"{message.strip()} ({code.strip()})"
		return message.strip()
	if isinstance(code, str) and code.strip():
		return f"Error code: {code.strip()}"
	return str(raw)
