from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiEnvelope(BaseModel):
	model_config = ConfigDict(extra="allow")

	ok: bool
	generated_at: str
	request_id: Optional[str] = None
	error: Optional[str] = None
	code: Optional[str] = None
	evidence: List[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
	model_config = ConfigDict(extra="forbid", populate_by_name=True)

	id: str
	role: Literal["user", "assistant"]
	content: str
	created_at: str = Field(..., alias="createdAt")


class ChatRequest(BaseModel):
	model_config = ConfigDict(extra="forbid", populate_by_name=True)

	# Emptiness is checked by the chat session so that it maps to a 400.
	message: Optional[str] = Field(default=None, description="User turn text, typed or transcribed.")
	thread_id: Optional[str] = Field(default=None, alias="threadId", description="Conversation to continue.")
	access_token: Optional[Any] = Field(
		default=None,
		alias="accessToken",
		description="Per-user bearer token; may also be sent as an Authorization header.",
	)
	language: Optional[str] = Field(default=None, description="UI language for localized errors, e.g. en, ne or ne-NP.")


class ChatResponse(ApiEnvelope):
	messages: List[ChatMessage] = Field(default_factory=list)
	thread_id: Optional[str] = Field(default=None, alias="threadId")


class HistoryResponse(ApiEnvelope):
	messages: List[ChatMessage] = Field(default_factory=list)


class AuthCheckResponse(ApiEnvelope):
	requires_oauth: bool = Field(..., alias="requiresOAuth")
	has_api_key: bool = Field(..., alias="hasApiKey")


class LoginUrlResponse(ApiEnvelope):
	url: str
	state: str


class TokenRequest(BaseModel):
	model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

	code: str = Field(..., min_length=1)
	state: str = Field(..., min_length=1)


class TokenResponse(ApiEnvelope):
	access_token: str = Field(..., alias="accessToken")
	expires_in: Optional[int] = Field(default=None, alias="expiresIn")
	token_type: str = Field(default="Bearer", alias="tokenType")


class SpeechTokenResponse(ApiEnvelope):
	token: str
	region: str
	locale: str
	voice: str


class HealthResponse(ApiEnvelope):
	backend: Literal["agents", "assistants"]
	auth_modes: List[str] = Field(default_factory=list)
	oauth_configured: bool = False
	speech_configured: bool = False
	poll_interval_s: float
	run_timeout_s: float
