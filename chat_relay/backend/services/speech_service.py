from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from chat_relay.backend import constants
from chat_relay.backend.config import Settings
from chat_relay.backend.errors import SpeechTokenError
from chat_relay.backend.services.localization import resolve_language


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoiceProfile:
	language: str
	locale: str
	voice: str


VOICE_PROFILES: Dict[str, VoiceProfile] = {
	"en": VoiceProfile(language="en", locale="en-US", voice="en-US-AvaMultilingualNeural"),
	"ne": VoiceProfile(language="ne", locale="ne-NP", voice="ne-NP-HemkalaNeural"),
}


def voice_profile(language: Optional[str]) -> VoiceProfile:
	return VOICE_PROFILES[resolve_language(language)]


def issue_token(settings: Settings, *, client: httpx.Client | None = None) -> str:
	"""Fetch a short-lived Speech authorization token for the browser SDK."""
	if not settings.speech_configured:
		raise SpeechTokenError("Speech service not configured")
	url = f"https://{settings.speech_region}.api.cognitive.microsoft.com/sts/v1.0/issueToken"
	owned = client is None
	http = client or httpx.Client(timeout=constants.SPEECH_HTTP_TIMEOUT_S)
	try:
		response = http.post(url, headers={"Ocp-Apim-Subscription-Key": settings.speech_key or ""})
	except httpx.HTTPError as exc:
		raise SpeechTokenError("Failed to get speech token", detail=str(exc)) from exc
	finally:
		if owned:
			http.close()
	if response.status_code >= 400:
		log.warning("speech token request rejected status=%s", response.status_code)
		raise SpeechTokenError("Failed to get speech token", detail=f"HTTP {response.status_code}")
	return response.text
