from unittest import TestCase
from urllib.parse import parse_qs, urlparse

import httpx

from chat_relay.backend.config import Settings
from chat_relay.backend.errors import ConfigurationError, OAuthExchangeError
from chat_relay.backend.services import oauth_service


def _settings(**overrides) -> Settings:
	values = dict(
		backend_kind="agents",
		endpoint="https://demo.services.ai.azure.com/api/projects/demo",
		agent_id="asst_demo",
		tenant_id="tenant-1",
		client_id="client-1",
		client_secret="client-secret",
	)
	values.update(overrides)
	return Settings(**values)


def _client(handler) -> httpx.Client:
	return httpx.Client(transport=httpx.MockTransport(handler))


class AuthorizationUrlTests(TestCase):
	def test_builds_tenant_authorize_url(self) -> None:
		url = oauth_service.authorization_url(
			_settings(),
			state="state-123",
			redirect_uri="http://localhost:8000/auth/callback",
		)
		parsed = urlparse(url)
		query = parse_qs(parsed.query)
		self.assertEqual(parsed.netloc, "login.microsoftonline.com")
		self.assertEqual(parsed.path, "/tenant-1/oauth2/v2.0/authorize")
		self.assertEqual(query["client_id"], ["client-1"])
		self.assertEqual(query["response_type"], ["code"])
		self.assertEqual(query["state"], ["state-123"])
		self.assertEqual(query["redirect_uri"], ["http://localhost:8000/auth/callback"])

	def test_requires_tenant_and_client(self) -> None:
		with self.assertRaises(ConfigurationError):
			oauth_service.authorization_url(_settings(tenant_id=None), state="s", redirect_uri="http://x/cb")

	def test_state_is_random(self) -> None:
		self.assertNotEqual(oauth_service.generate_state(), oauth_service.generate_state())


class ExchangeCodeTests(TestCase):
	def test_successful_exchange(self) -> None:
		seen = {}

		def handler(request: httpx.Request) -> httpx.Response:
			seen["url"] = str(request.url)
			seen["form"] = parse_qs(request.content.decode("utf-8"))
			return httpx.Response(200, json={"access_token": "user-token", "expires_in": 3599, "token_type": "Bearer"})

		grant = oauth_service.exchange_code(
			_settings(),
			code="auth-code",
			redirect_uri="http://localhost:8000/auth/callback",
			client=_client(handler),
		)
		self.assertEqual(grant.as_dict(), {"accessToken": "user-token", "expiresIn": 3599, "tokenType": "Bearer"})
		self.assertEqual(seen["url"], "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token")
		self.assertEqual(seen["form"]["grant_type"], ["authorization_code"])
		self.assertEqual(seen["form"]["code"], ["auth-code"])
		self.assertEqual(seen["form"]["client_secret"], ["client-secret"])

	def test_rejected_code_surfaces_remote_description(self) -> None:
		def handler(request: httpx.Request) -> httpx.Response:
			return httpx.Response(
				400,
				json={"error": "invalid_grant", "error_description": "AADSTS70008: The provided authorization code has expired."},
			)

		with self.assertRaises(OAuthExchangeError) as ctx:
			oauth_service.exchange_code(_settings(), code="old", redirect_uri="http://x/cb", client=_client(handler))
		self.assertEqual(ctx.exception.status_code, 400)
		self.assertIn("AADSTS70008", str(ctx.exception))

	def test_network_failure(self) -> None:
		def handler(request: httpx.Request) -> httpx.Response:
			raise httpx.ConnectError("no route to host", request=request)

		with self.assertRaises(OAuthExchangeError) as ctx:
			oauth_service.exchange_code(_settings(), code="c", redirect_uri="http://x/cb", client=_client(handler))
		self.assertEqual(ctx.exception.status_code, 500)

	def test_missing_access_token_in_response(self) -> None:
		def handler(request: httpx.Request) -> httpx.Response:
			return httpx.Response(200, json={"token_type": "Bearer"})

		with self.assertRaises(OAuthExchangeError):
			oauth_service.exchange_code(_settings(), code="c", redirect_uri="http://x/cb", client=_client(handler))

	def test_requires_client_secret(self) -> None:
		with self.assertRaises(ConfigurationError):
			oauth_service.exchange_code(_settings(client_secret=None), code="c", redirect_uri="http://x/cb")
