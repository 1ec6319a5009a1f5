from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from chat_relay.backend import constants
from chat_relay.backend.adapters.factory import build_backend
from chat_relay.backend.config import Settings, load_settings
from chat_relay.backend.middleware import RequestContextMiddleware
from chat_relay.backend.response import error_response
from chat_relay.backend.routers import auth, chat, health, speech
from chat_relay.backend.services.chat_service import BackendFactory


log = logging.getLogger(__name__)

# Detail keys a router may attach that are passed through to the error envelope.
_PASSTHROUGH_DETAIL_KEYS = ("retryText", "localizedError", "threadId")


def create_app(
	settings: Settings | None = None,
	backend_factory: BackendFactory | None = None,
) -> FastAPI:
	@asynccontextmanager
	async def lifespan(app: FastAPI):
		if getattr(app.state, "settings", None) is None:
			app.state.settings = load_settings()
		_configure_logging(app.state.settings.log_level)
		log.info("chat relay ready: %r", app.state.settings)
		yield

	app = FastAPI(
		title=constants.APP_NAME,
		version=constants.APP_VERSION,
		lifespan=lifespan,
	)
	app.state.settings = settings
	app.state.backend_factory = backend_factory or build_backend
	_register_middleware(app)
	_register_handlers(app)
	_register_routers(app)
	return app


def _configure_logging(level: str) -> None:
	root = logging.getLogger()
	if not root.handlers:
		logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
	logging.getLogger("chat_relay").setLevel(level)


def _register_middleware(app: FastAPI) -> None:
	app.add_middleware(RequestContextMiddleware)
	app.add_middleware(GZipMiddleware, minimum_size=1024)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=constants.DEFAULT_CORS_ALLOW_ORIGINS,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.add_middleware(
		TrustedHostMiddleware,
		allowed_hosts=constants.DEFAULT_TRUSTED_HOSTS,
	)


def _register_routers(app: FastAPI) -> None:
	app.include_router(chat.router)
	app.include_router(auth.router)
	app.include_router(speech.router)
	app.include_router(health.router)


def _register_handlers(app: FastAPI) -> None:
	@app.exception_handler(HTTPException)
	async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
		code = f"http_{exc.status_code}"
		message = _exc_message(exc.detail)
		evidence = None
		extra = {}
		if isinstance(exc.detail, dict):
			detail_code = exc.detail.get("code")
			detail_message = exc.detail.get("message")
			detail_evidence = exc.detail.get("evidence")
			if isinstance(detail_code, str) and detail_code.strip():
				code = detail_code.strip()
			if isinstance(detail_message, str) and detail_message.strip():
				message = detail_message.strip()
			if isinstance(detail_evidence, list):
				evidence = [str(item) for item in detail_evidence]
			extra = {key: exc.detail[key] for key in _PASSTHROUGH_DETAIL_KEYS if exc.detail.get(key) is not None}
		payload = error_response(
			code=code,
			message=message,
			request=request,
			evidence=evidence,
			extra=extra,
		)
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(StarletteHTTPException)
	async def handle_starlette_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
		payload = error_response(
			code=f"http_{exc.status_code}",
			message=_exc_message(exc.detail),
			request=request,
		)
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(RequestValidationError)
	async def handle_request_validation_error(
		request: Request,
		exc: RequestValidationError,
	) -> JSONResponse:
		evidence = []
		for issue in exc.errors():
			loc = ".".join(str(part) for part in issue.get("loc", []))
			msg = issue.get("msg", "Invalid request.")
			evidence.append(f"{loc}: {msg}" if loc else msg)
		payload = error_response(
			code="validation_error",
			message="Request validation failed.",
			request=request,
			evidence=evidence,
		)
		return JSONResponse(status_code=400, content=payload)

	@app.exception_handler(Exception)
	async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
		log.exception("unhandled error on %s %s", request.method, request.url.path)
		payload = error_response(
			code="internal_error",
			message="Internal server error.",
			request=request,
		)
		return JSONResponse(status_code=500, content=payload)


def _exc_message(detail: Any) -> str:
	if isinstance(detail, str):
		return detail
	if detail is None:
		return "Request failed."
	return str(detail)


app = create_app()
