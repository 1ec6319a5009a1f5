from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from chat_relay.backend.errors import SpeechTokenError
from chat_relay.backend.response import success_response
from chat_relay.backend.schemas import SpeechTokenResponse
from chat_relay.backend.services import speech_service


router = APIRouter(prefix="/api/speech-token", tags=["speech"])


@router.get("", response_model=SpeechTokenResponse)
def get_speech_token(request: Request, language: Optional[str] = Query(default=None)):
	settings = request.app.state.settings
	try:
		token = speech_service.issue_token(settings)
	except SpeechTokenError as exc:
		raise HTTPException(status_code=exc.status_code, detail={"code": exc.code, "message": str(exc)}) from exc
	profile = speech_service.voice_profile(language)
	return success_response(
		request=request,
		body={"token": token, "region": settings.speech_region, "locale": profile.locale, "voice": profile.voice},
	)
