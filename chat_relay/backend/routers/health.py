from __future__ import annotations

from fastapi import APIRouter, Request

from chat_relay.backend.response import success_response
from chat_relay.backend.schemas import HealthResponse


router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("", response_model=HealthResponse)
def get_health(request: Request):
	settings = request.app.state.settings
	return success_response(
		request=request,
		body={
			"backend": settings.backend_kind,
			"auth_modes": settings.auth_modes(),
			"oauth_configured": settings.oauth_configured,
			"speech_configured": settings.speech_configured,
			"poll_interval_s": settings.poll_interval_s,
			"run_timeout_s": settings.run_timeout_s,
		},
	)
