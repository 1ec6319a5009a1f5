from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Mapping, Optional

from chat_relay.backend import constants
from chat_relay.backend.errors import ConfigurationError


BackendKind = Literal["agents", "assistants"]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class Settings:
	backend_kind: BackendKind
	endpoint: str
	agent_id: str
	api_key: Optional[str] = None
	api_version: str = constants.DEFAULT_ASSISTANTS_API_VERSION
	tenant_id: Optional[str] = None
	client_id: Optional[str] = None
	client_secret: Optional[str] = None
	oauth_scopes: str = constants.DEFAULT_OAUTH_SCOPES
	allow_ambient_credential: bool = True
	poll_interval_s: float = constants.DEFAULT_POLL_INTERVAL_S
	run_timeout_s: float = constants.DEFAULT_RUN_TIMEOUT_S
	token_lifetime_s: int = constants.DEFAULT_TOKEN_LIFETIME_S
	speech_key: Optional[str] = None
	speech_region: Optional[str] = None
	log_level: str = constants.DEFAULT_LOG_LEVEL

	def __repr__(self) -> str:
		return (
			f"Settings(backend_kind={self.backend_kind!r}, endpoint={self.endpoint!r}, "
			f"agent_id={self.agent_id!r}, auth_modes={self.auth_modes()!r})"
		)

	@property
	def has_api_key(self) -> bool:
		return bool(self.api_key)

	@property
	def oauth_configured(self) -> bool:
		return bool(self.tenant_id and self.client_id)

	@property
	def speech_configured(self) -> bool:
		return bool(self.speech_key and self.speech_region)

	def auth_modes(self) -> list[str]:
		modes = []
		if self.has_api_key:
			modes.append("shared_key")
		if self.oauth_configured:
			modes.append("bearer_token")
		if self.allow_ambient_credential:
			modes.append("ambient")
		return modes


def _str_env(env: Mapping[str, str], name: str) -> Optional[str]:
	raw = env.get(name, "").strip()
	return raw or None


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
	raw = env.get(name, "").strip()
	if not raw:
		return default
	try:
		value = float(raw)
	except ValueError as exc:
		raise ConfigurationError(f"{name} must be numeric.") from exc
	if value <= 0:
		raise ConfigurationError(f"{name} must be greater than zero.")
	return value


def _int_env(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
	raw = env.get(name, "").strip()
	if not raw:
		return default
	try:
		value = int(raw)
	except ValueError as exc:
		raise ConfigurationError(f"{name} must be an integer.") from exc
	if value < minimum:
		raise ConfigurationError(f"{name} must be at least {minimum}.")
	return value


def _bool_env(env: Mapping[str, str], name: str, default: bool) -> bool:
	raw = env.get(name, "").strip().lower()
	if not raw:
		return default
	if raw in _TRUE_VALUES:
		return True
	if raw in _FALSE_VALUES:
		return False
	raise ConfigurationError(f"{name} must be a boolean (true/false).")


def _backend_kind(env: Mapping[str, str]) -> BackendKind:
	mode = env.get("RELAY_BACKEND", "auto").strip().lower() or "auto"
	if mode not in {"auto", *constants.BACKEND_KINDS}:
		raise ConfigurationError("RELAY_BACKEND must be one of: auto, agents, assistants.")
	if mode != "auto":
		return mode  # type: ignore[return-value]
	if _str_env(env, "AZURE_OPENAI_ENDPOINT") and _str_env(env, "AZURE_OPENAI_ASSISTANT_ID"):
		return "assistants"
	return "agents"


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
	"""Read and validate the relay configuration from the environment.

	Raises ConfigurationError when the minimum set (endpoint, agent id and one
	usable auth path) is missing or when a value is malformed.
	"""
	env = os.environ if env is None else env
	kind = _backend_kind(env)
	if kind == "agents":
		endpoint = _str_env(env, "AZURE_AI_PROJECT_URL")
		agent_id = _str_env(env, "AZURE_AI_AGENT_ID")
		api_key = _str_env(env, "AZURE_AI_API_KEY")
		if not endpoint or not agent_id:
			raise ConfigurationError(
				"Missing required environment variables: AZURE_AI_PROJECT_URL and AZURE_AI_AGENT_ID."
			)
		if not endpoint.startswith("https://"):
			raise ConfigurationError("AZURE_AI_PROJECT_URL must start with https://")
	else:
		endpoint = _str_env(env, "AZURE_OPENAI_ENDPOINT")
		agent_id = _str_env(env, "AZURE_OPENAI_ASSISTANT_ID")
		api_key = _str_env(env, "AZURE_OPENAI_API_KEY")
		if not endpoint or not agent_id:
			raise ConfigurationError(
				"Missing required environment variables: AZURE_OPENAI_ENDPOINT and AZURE_OPENAI_ASSISTANT_ID."
			)

	settings = Settings(
		backend_kind=kind,
		endpoint=endpoint.rstrip("/"),
		agent_id=agent_id,
		api_key=api_key,
		api_version=_str_env(env, "AZURE_OPENAI_API_VERSION") or constants.DEFAULT_ASSISTANTS_API_VERSION,
		tenant_id=_str_env(env, "AZURE_TENANT_ID"),
		client_id=_str_env(env, "AZURE_CLIENT_ID"),
		client_secret=_str_env(env, "AZURE_CLIENT_SECRET"),
		oauth_scopes=_str_env(env, "OAUTH_SCOPES") or constants.DEFAULT_OAUTH_SCOPES,
		allow_ambient_credential=_bool_env(env, "RELAY_ALLOW_AMBIENT_CREDENTIAL", True),
		poll_interval_s=_float_env(env, "RELAY_POLL_INTERVAL_S", constants.DEFAULT_POLL_INTERVAL_S),
		run_timeout_s=_float_env(env, "RELAY_RUN_TIMEOUT_S", constants.DEFAULT_RUN_TIMEOUT_S),
		token_lifetime_s=_int_env(env, "RELAY_TOKEN_LIFETIME_S", constants.DEFAULT_TOKEN_LIFETIME_S, minimum=60),
		speech_key=_str_env(env, "SPEECH_KEY"),
		speech_region=_str_env(env, "SPEECH_REGION"),
		log_level=(_str_env(env, "RELAY_LOG_LEVEL") or constants.DEFAULT_LOG_LEVEL).upper(),
	)
	if settings.log_level not in _LOG_LEVELS:
		raise ConfigurationError(f"RELAY_LOG_LEVEL must be one of: {', '.join(sorted(_LOG_LEVELS))}.")
	if not settings.auth_modes():
		raise ConfigurationError(
			"No authentication configured. Set an API key, AZURE_TENANT_ID and AZURE_CLIENT_ID "
			"for sign-in, or enable RELAY_ALLOW_AMBIENT_CREDENTIAL."
		)
	return settings
