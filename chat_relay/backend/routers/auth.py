from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from chat_relay.backend.errors import RelayError
from chat_relay.backend.response import success_response
from chat_relay.backend.schemas import AuthCheckResponse, LoginUrlResponse, TokenRequest, TokenResponse
from chat_relay.backend.services import oauth_service


log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _redirect_uri(request: Request) -> str:
	return str(request.base_url).rstrip("/") + "/auth/callback"


@router.get("/check", response_model=AuthCheckResponse)
def check_auth(request: Request):
	settings = request.app.state.settings
	return success_response(
		request=request,
		body={"requiresOAuth": not settings.has_api_key, "hasApiKey": settings.has_api_key},
	)


@router.get("/login-url", response_model=LoginUrlResponse)
def login_url(request: Request):
	settings = request.app.state.settings
	if not settings.oauth_configured:
		raise HTTPException(
			status_code=503,
			detail={"code": "oauth_not_configured", "message": "Sign-in is not configured on this server."},
		)
	state = oauth_service.generate_state()
	url = oauth_service.authorization_url(settings, state=state, redirect_uri=_redirect_uri(request))
	return success_response(request=request, body={"url": url, "state": state})


@router.post("/token", response_model=TokenResponse)
def exchange_token(request: Request, payload: TokenRequest):
	try:
		grant = oauth_service.exchange_code(
			request.app.state.settings,
			code=payload.code,
			redirect_uri=_redirect_uri(request),
		)
	except RelayError as exc:
		log.warning("token exchange failed code=%s: %s", exc.code, exc)
		raise HTTPException(status_code=exc.status_code, detail={"code": exc.code, "message": str(exc)}) from exc
	return success_response(request=request, body=grant.as_dict())
