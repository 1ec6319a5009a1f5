from __future__ import annotations

import asyncio
import logging
from threading import Event
from typing import List, Optional, Tuple

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool

from chat_relay.backend.errors import BackendError, RelayError, user_message
from chat_relay.backend.response import success_response
from chat_relay.backend.schemas import ChatRequest, ChatResponse, HistoryResponse
from chat_relay.backend.services.chat_service import open_session
from chat_relay.backend.services.localization import error_text, resolve_language
from chat_relay.backend.services.run_orchestrator import Message


log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

_DISCONNECT_POLL_S = 0.5


def _bearer_from_header(request: Request) -> Optional[str]:
	scheme, _, token = request.headers.get("Authorization", "").partition(" ")
	if scheme.lower() == "bearer" and token.strip():
		return token.strip()
	return None


def relay_http_error(
	exc: RelayError,
	*,
	language: Optional[str],
	retry_text: Optional[str] = None,
) -> HTTPException:
	detail = {
		"code": exc.code,
		"message": user_message(exc),
		"localizedError": error_text(exc.code, resolve_language(language)),
		"evidence": _evidence(exc),
	}
	if isinstance(exc, BackendError) and retry_text:
		detail["retryText"] = retry_text
	thread_id = getattr(exc, "thread_id", None)
	if thread_id:
		detail["threadId"] = thread_id
	return HTTPException(status_code=exc.status_code, detail=detail)


def _evidence(exc: RelayError) -> List[str]:
	evidence = []
	if exc.detail:
		evidence.append(exc.detail)
	if exc.remote is not None:
		status = exc.remote.http_status if exc.remote.http_status is not None else "n/a"
		evidence.append(f"remote {exc.remote.kind} (HTTP {status}): {exc.remote.message}")
	return evidence


async def _watch_disconnect(request: Request, cancel_event: Event) -> None:
	while not cancel_event.is_set():
		if await request.is_disconnected():
			cancel_event.set()
			return
		await asyncio.sleep(_DISCONNECT_POLL_S)


def _send_turn(request: Request, payload: ChatRequest, cancel_event: Event) -> Tuple[List[Message], Optional[str]]:
	access_token = payload.access_token if payload.access_token is not None else _bearer_from_header(request)
	with open_session(
		request.app.state.settings,
		access_token=access_token,
		thread_id=payload.thread_id,
		backend_factory=request.app.state.backend_factory,
	) as session:
		messages = session.send_turn(payload.message, cancel_event=cancel_event)
		return messages, session.thread_id


@router.post("", response_model=ChatResponse)
async def send_message(request: Request, payload: ChatRequest):
	cancel_event = Event()
	watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
	try:
		messages, thread_id = await run_in_threadpool(_send_turn, request, payload, cancel_event)
	except RelayError as exc:
		log.warning("chat turn failed code=%s: %s", exc.code, exc)
		raise relay_http_error(exc, language=payload.language, retry_text=payload.message) from exc
	finally:
		cancel_event.set()
		watcher.cancel()
	return success_response(
		request=request,
		body={"messages": [message.as_dict() for message in messages], "threadId": thread_id},
	)


@router.get("", response_model=HistoryResponse)
def history(
	request: Request,
	thread_id: Optional[str] = Query(default=None, alias="threadId"),
	language: Optional[str] = Query(default=None),
):
	if not thread_id:
		return success_response(request=request, body={"messages": []})
	try:
		with open_session(
			request.app.state.settings,
			access_token=_bearer_from_header(request),
			thread_id=thread_id,
			backend_factory=request.app.state.backend_factory,
		) as session:
			messages = session.list_history()
	except RelayError as exc:
		log.warning("history fetch failed code=%s: %s", exc.code, exc)
		raise relay_http_error(exc, language=language) from exc
	return success_response(request=request, body={"messages": [message.as_dict() for message in messages]})
