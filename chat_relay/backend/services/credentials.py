from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

import jwt

from chat_relay.backend import constants
from chat_relay.backend.errors import ConfigurationError, InvalidCredentialError


log = logging.getLogger(__name__)

CredentialMode = Literal["shared_key", "bearer_token", "ambient"]


@dataclass(frozen=True)
class SharedKey:
	key: str = field(repr=False)
	mode: CredentialMode = field(default="shared_key", init=False)


@dataclass(frozen=True)
class BearerToken:
	token: str = field(repr=False)
	expires_at: float
	mode: CredentialMode = field(default="bearer_token", init=False)

	def __post_init__(self) -> None:
		if not isinstance(self.token, str) or not self.token.strip():
			raise InvalidCredentialError("Invalid access token provided.")

	@classmethod
	def from_token(
		cls,
		token: Any,
		*,
		lifetime_s: int = constants.DEFAULT_TOKEN_LIFETIME_S,
		now: float | None = None,
	) -> "BearerToken":
		if not isinstance(token, str) or not token.strip():
			raise InvalidCredentialError("Invalid access token provided.")
		issued = time.time() if now is None else now
		expires_at = _jwt_expiry(token)
		if expires_at is None:
			expires_at = issued + lifetime_s
		return cls(token=token.strip(), expires_at=expires_at)

	def seconds_remaining(self, now: float | None = None) -> float:
		current = time.time() if now is None else now
		return self.expires_at - current

	def is_expired(self, now: float | None = None) -> bool:
		return self.seconds_remaining(now) <= 0


@dataclass(frozen=True)
class Ambient:
	mode: CredentialMode = field(default="ambient", init=False)


Credential = Union[SharedKey, BearerToken, Ambient]


def _jwt_expiry(token: str) -> Optional[float]:
	"""Read `exp` from a JWT without verifying its signature."""
	try:
		claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
	except jwt.PyJWTError:
		return None
	exp = claims.get("exp")
	if isinstance(exp, bool) or not isinstance(exp, (int, float)):
		return None
	return float(exp)


def resolve(
	explicit_token: Any = None,
	api_key: str | None = None,
	*,
	allow_ambient: bool = True,
	token_lifetime_s: int = constants.DEFAULT_TOKEN_LIFETIME_S,
) -> Credential:
	"""Pick the credential for one session.

	An explicit bearer token wins over the shared key, which wins over the
	ambient credential. A token that is present but empty or not a string is
	rejected here rather than on first use.
	"""
	if explicit_token is not None:
		credential: Credential = BearerToken.from_token(explicit_token, lifetime_s=token_lifetime_s)
	elif api_key and api_key.strip():
		credential = SharedKey(key=api_key.strip())
	elif allow_ambient:
		credential = Ambient()
	else:
		raise ConfigurationError(
			"No credential available: provide an access token or configure an API key."
		)
	log.info("credential resolved mode=%s", describe(credential))
	return credential


def describe(credential: Credential) -> str:
	if isinstance(credential, BearerToken):
		remaining = max(int(credential.seconds_remaining()), 0)
		return f"bearer_token(expires_in={remaining}s)"
	return credential.mode


def require_active(credential: Credential) -> None:
	if isinstance(credential, BearerToken) and credential.is_expired():
		log.warning("bearer token expired; refusing remote call")
		raise InvalidCredentialError("Access token has expired. Sign in again.")
