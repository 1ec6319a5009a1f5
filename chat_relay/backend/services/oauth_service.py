from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from chat_relay.backend import constants
from chat_relay.backend.config import Settings
from chat_relay.backend.errors import ConfigurationError, OAuthExchangeError


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenGrant:
	access_token: str
	expires_in: Optional[int]
	token_type: str

	def as_dict(self) -> dict:
		return {
			"accessToken": self.access_token,
			"expiresIn": self.expires_in,
			"tokenType": self.token_type,
		}


def generate_state() -> str:
	return secrets.token_urlsafe(24)


def _require_oauth(settings: Settings) -> None:
	if not settings.oauth_configured:
		raise ConfigurationError(
			"Azure OAuth configuration is missing. Set AZURE_TENANT_ID and AZURE_CLIENT_ID."
		)


def authorization_url(settings: Settings, *, state: str, redirect_uri: str) -> str:
	_require_oauth(settings)
	params = {
		"client_id": settings.client_id,
		"response_type": "code",
		"redirect_uri": redirect_uri,
		"response_mode": "query",
		"scope": settings.oauth_scopes,
		"state": state,
	}
	return f"{constants.OAUTH_AUTHORITY}/{settings.tenant_id}/oauth2/v2.0/authorize?{urlencode(params)}"


def exchange_code(
	settings: Settings,
	*,
	code: str,
	redirect_uri: str,
	client: httpx.Client | None = None,
) -> TokenGrant:
	"""Trade an authorization code for an access token at the tenant's token endpoint."""
	_require_oauth(settings)
	if not settings.client_secret:
		raise ConfigurationError("Azure OAuth configuration is missing. Set AZURE_CLIENT_SECRET.")
	form = {
		"client_id": settings.client_id,
		"client_secret": settings.client_secret,
		"code": code,
		"redirect_uri": redirect_uri,
		"grant_type": "authorization_code",
		"scope": settings.oauth_scopes,
	}
	url = f"{constants.OAUTH_AUTHORITY}/{settings.tenant_id}/oauth2/v2.0/token"
	owned = client is None
	http = client or httpx.Client(timeout=constants.OAUTH_HTTP_TIMEOUT_S)
	try:
		response = http.post(url, data=form)
	except httpx.HTTPError as exc:
		raise OAuthExchangeError("Failed to exchange token", detail=str(exc)) from exc
	finally:
		if owned:
			http.close()

	payload = _json_or_empty(response)
	if response.status_code >= 400:
		description = payload.get("error_description") or payload.get("error")
		log.warning("token exchange rejected status=%s error=%s", response.status_code, payload.get("error"))
		raise OAuthExchangeError(
			description or "Failed to exchange authorization code for token",
			status_code=response.status_code,
		)
	access_token = payload.get("access_token")
	if not isinstance(access_token, str) or not access_token:
		raise OAuthExchangeError("Token endpoint returned no access token")
	expires_in = payload.get("expires_in")
	return TokenGrant(
		access_token=access_token,
		expires_in=int(expires_in) if isinstance(expires_in, (int, str)) and str(expires_in).isdigit() else None,
		token_type=str(payload.get("token_type") or "Bearer"),
	)


def _json_or_empty(response: httpx.Response) -> dict:
	try:
		payload = response.json()
	except ValueError:
		return {}
	return payload if isinstance(payload, dict) else {}
