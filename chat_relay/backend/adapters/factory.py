from __future__ import annotations

from chat_relay.backend.adapters.agents_adapter import AgentsBackend
from chat_relay.backend.adapters.assistants_adapter import AssistantsBackend
from chat_relay.backend.adapters.base import RunBackend
from chat_relay.backend.config import Settings
from chat_relay.backend.errors import ConfigurationError
from chat_relay.backend.services.credentials import Credential


def build_backend(settings: Settings, credential: Credential) -> RunBackend:
	if settings.backend_kind == "agents":
		return AgentsBackend.from_settings(settings, credential)
	if settings.backend_kind == "assistants":
		return AssistantsBackend.from_settings(settings, credential)
	raise ConfigurationError(f"Unknown backend kind: {settings.backend_kind}")
