#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional, TextIO


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
	sys.path.insert(0, str(REPO_ROOT))

from chat_relay.backend.adapters.factory import build_backend  # noqa: E402
from chat_relay.backend.config import Settings, load_settings  # noqa: E402
from chat_relay.backend.errors import RelayError, user_message  # noqa: E402
from chat_relay.backend.services.chat_service import BackendFactory, last_assistant_message, open_session  # noqa: E402


_EXIT_WORDS = {"exit", "quit", ":q"}


def _build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="Chat with the configured assistant from a terminal.")
	parser.add_argument("--thread-id", default=None, help="Continue an existing conversation thread.")
	parser.add_argument(
		"--access-token",
		default=os.getenv("RELAY_ACCESS_TOKEN") or None,
		help="Bearer token to call the assistant with (defaults to RELAY_ACCESS_TOKEN).",
	)
	parser.add_argument("--history", action="store_true", help="Print the thread history and exit.")
	return parser


def main(
	argv: Optional[List[str]] = None,
	*,
	settings: Settings | None = None,
	backend_factory: BackendFactory = build_backend,
	read_line: Callable[[str], str] = input,
	out: TextIO | None = None,
) -> int:
	args = _build_parser().parse_args(argv)
	out = out or sys.stdout
	try:
		settings = settings or load_settings()
		session = open_session(
			settings,
			access_token=args.access_token,
			thread_id=args.thread_id,
			backend_factory=backend_factory,
		)
	except RelayError as exc:
		print(f"error: {user_message(exc)}", file=out)
		return 2

	with session:
		if args.history:
			for message in session.list_history():
				print(f"{message.role}: {message.content}", file=out)
			return 0
		while True:
			try:
				text = read_line("you> ")
			except EOFError:
				break
			if text.strip().lower() in _EXIT_WORDS:
				break
			if not text.strip():
				continue
			try:
				messages = session.send_turn(text)
			except RelayError as exc:
				print(f"error: {user_message(exc)}", file=out)
				continue
			reply = last_assistant_message(messages)
			print(f"assistant> {reply.content if reply else '(no reply)'}", file=out)
		if session.thread_id:
			print(f"thread: {session.thread_id}", file=out)
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
