import threading
from unittest import TestCase

from chat_relay.backend.adapters.base import RemoteMessage
from chat_relay.backend.errors import (
	MessagePostError,
	RunAbandonedError,
	RunCancelledError,
	RunExpiredError,
	RunFailedError,
	RunTimeoutError,
	TurnConflictError,
)
from chat_relay.backend.services.run_orchestrator import RunOrchestrator, RunPolicy, turn_gate

from fake_backend import BASE_TIME, FakeBackend


class _FakeClock:
	def __init__(self) -> None:
		self.now = 0.0
		self.sleeps = []

	def __call__(self) -> float:
		return self.now

	def sleep(self, seconds: float) -> None:
		self.sleeps.append(seconds)
		self.now += seconds


def _orchestrator(backend: FakeBackend, *, interval: float = 1.0, timeout: float = 5.0):
	clock = _FakeClock()
	orchestrator = RunOrchestrator(
		backend,
		agent_id="asst_demo",
		policy=RunPolicy(poll_interval_s=interval, timeout_s=timeout),
		clock=clock,
		sleep=clock.sleep,
	)
	return orchestrator, clock


class SubmitTurnTests(TestCase):
	def test_completed_run_returns_ordered_history(self) -> None:
		backend = FakeBackend(statuses=["in_progress", "completed"], reply="Namaste【1:0†guide】!")
		orchestrator, clock = _orchestrator(backend)

		messages = orchestrator.submit_turn("thread_a", "Hello")

		self.assertEqual([message.role for message in messages], ["user", "assistant"])
		self.assertEqual(messages[0].content, "Hello")
		self.assertEqual(messages[1].content, "Namaste!")
		self.assertEqual(backend.posted, [("thread_a", "user", "Hello")])
		self.assertEqual(backend.runs_started, [("thread_a", "asst_demo")])
		self.assertEqual(backend.status_calls, 2)
		self.assertEqual(clock.sleeps, [1.0, 1.0])

	def test_newest_first_backend_is_returned_oldest_first(self) -> None:
		backend = FakeBackend(newest_first=True)
		orchestrator, _ = _orchestrator(backend)
		messages = orchestrator.submit_turn("thread_b", "First question")
		self.assertEqual([message.role for message in messages], ["user", "assistant"])
		self.assertLess(messages[0].created_at, messages[1].created_at)

	def test_queued_then_in_progress_newest_first_yields_two_ascending(self) -> None:
		backend = FakeBackend(statuses=["queued", "in_progress", "in_progress", "completed"], newest_first=True)
		orchestrator, _ = _orchestrator(backend)
		messages = orchestrator.submit_turn("thread_e", "Hello")
		self.assertEqual(len(messages), 2)
		self.assertEqual([message.role for message in messages], ["user", "assistant"])
		self.assertLess(messages[0].created_at, messages[1].created_at)
		self.assertEqual(backend.status_calls, 4)

	def test_timeout_after_bounded_polls(self) -> None:
		backend = FakeBackend(statuses=["in_progress"])
		orchestrator, clock = _orchestrator(backend, interval=1.0, timeout=5.0)
		with self.assertRaises(RunTimeoutError) as ctx:
			orchestrator.submit_turn("thread_c", "Are you there?")
		self.assertEqual(backend.status_calls, 5)
		self.assertEqual(clock.now, 5.0)
		self.assertIn("in_progress", str(ctx.exception))

	def test_failed_run_carries_remote_detail(self) -> None:
		backend = FakeBackend(statuses=["failed"], last_error="rate limited (rate_limit_exceeded)")
		orchestrator, _ = _orchestrator(backend)
		with self.assertRaises(RunFailedError) as ctx:
			orchestrator.submit_turn("thread_d", "Hi")
		self.assertEqual(str(ctx.exception), "Run failed: rate limited (rate_limit_exceeded)")

	def test_failed_run_without_detail(self) -> None:
		backend = FakeBackend(statuses=["failed"])
		orchestrator, _ = _orchestrator(backend)
		with self.assertRaises(RunFailedError) as ctx:
			orchestrator.submit_turn("thread_e", "Hi")
		self.assertEqual(str(ctx.exception), "Run failed: Unknown error")

	def test_cancelled_and_expired_runs(self) -> None:
		for status, error in (("cancelled", RunCancelledError), ("expired", RunExpiredError)):
			backend = FakeBackend(statuses=[status])
			orchestrator, _ = _orchestrator(backend)
			with self.assertRaises(error):
				orchestrator.submit_turn(f"thread_{status}", "Hi")

	def test_unexpected_terminal_status_is_a_failure(self) -> None:
		backend = FakeBackend(statuses=["requires_action"])
		orchestrator, _ = _orchestrator(backend)
		with self.assertRaises(RunFailedError) as ctx:
			orchestrator.submit_turn("thread_f", "Hi")
		self.assertIn("requires_action", str(ctx.exception))

	def test_post_failure_starts_no_run(self) -> None:
		backend = FakeBackend()
		backend.post_error = MessagePostError("Failed to post message", detail="thread is locked")
		orchestrator, _ = _orchestrator(backend)
		with self.assertRaises(MessagePostError):
			orchestrator.submit_turn("thread_g", "Hi")
		self.assertEqual(backend.runs_started, [])

	def test_cancel_event_stops_polling(self) -> None:
		backend = FakeBackend(statuses=["in_progress"])
		orchestrator, _ = _orchestrator(backend)
		cancel = threading.Event()
		cancel.set()
		with self.assertRaises(RunAbandonedError):
			orchestrator.submit_turn("thread_h", "Hi", cancel_event=cancel)
		self.assertEqual(backend.status_calls, 0)

	def test_second_turn_on_busy_thread_is_rejected(self) -> None:
		backend = FakeBackend()
		orchestrator, _ = _orchestrator(backend, interval=0.01, timeout=0.01)
		with turn_gate("thread_busy", 1.0):
			with self.assertRaises(TurnConflictError):
				orchestrator.submit_turn("thread_busy", "Hi")
		self.assertEqual(backend.posted, [])
		self.assertEqual(len(orchestrator.submit_turn("thread_busy", "Hi again")), 2)


class FetchMessagesTests(TestCase):
	def test_filters_roles_and_missing_text(self) -> None:
		backend = FakeBackend()
		backend.messages["thread_x"] = [
			RemoteMessage(id="m1", role="user", text="Question", created_at=BASE_TIME),
			RemoteMessage(id="m2", role="system", text="hidden", created_at=BASE_TIME),
			RemoteMessage(id="m3", role="assistant", text=None, created_at=BASE_TIME),
			RemoteMessage(id="m4", role="assistant", text="Answer [doc1]", created_at=BASE_TIME),
		]
		orchestrator, _ = _orchestrator(backend)
		messages = orchestrator.fetch_messages("thread_x")
		self.assertEqual([message.id for message in messages], ["m1", "m4"])
		self.assertEqual(messages[1].content, "Answer")

	def test_message_serializes_with_utc_timestamp(self) -> None:
		backend = FakeBackend()
		backend.messages["thread_y"] = [
			RemoteMessage(id="m1", role="assistant", text="Hi", created_at=BASE_TIME),
		]
		orchestrator, _ = _orchestrator(backend)
		payload = orchestrator.fetch_messages("thread_y")[0].as_dict()
		self.assertEqual(
			payload,
			{"id": "m1", "role": "assistant", "content": "Hi", "createdAt": "2024-05-01T12:00:00Z"},
		)
