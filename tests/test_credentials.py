import time
from unittest import TestCase

import jwt

from chat_relay.backend.errors import ConfigurationError, InvalidCredentialError
from chat_relay.backend.services import credentials
from chat_relay.backend.services.credentials import Ambient, BearerToken, SharedKey


def _jwt(claims: dict) -> str:
	return jwt.encode(claims, "relay-test-signing-key-0123456789abcdef", algorithm="HS256")


class ResolveTests(TestCase):
	def test_explicit_token_wins_over_api_key(self) -> None:
		credential = credentials.resolve("user-token", "shared-key")
		self.assertIsInstance(credential, BearerToken)
		self.assertEqual(credential.mode, "bearer_token")
		self.assertEqual(credential.token, "user-token")

	def test_api_key_used_when_no_token(self) -> None:
		credential = credentials.resolve(None, "shared-key")
		self.assertIsInstance(credential, SharedKey)
		self.assertEqual(credential.mode, "shared_key")

	def test_ambient_fallback(self) -> None:
		credential = credentials.resolve(None, None)
		self.assertIsInstance(credential, Ambient)
		self.assertEqual(credentials.describe(credential), "ambient")

	def test_nothing_available_is_a_configuration_error(self) -> None:
		with self.assertRaises(ConfigurationError):
			credentials.resolve(None, "  ", allow_ambient=False)

	def test_present_but_invalid_token_is_rejected(self) -> None:
		for bad in ("", "   ", 42, {"token": "x"}):
			with self.assertRaises(InvalidCredentialError):
				credentials.resolve(bad, "shared-key")


class BearerTokenTests(TestCase):
	def test_expiry_read_from_jwt_claims(self) -> None:
		token = BearerToken.from_token(_jwt({"exp": 2000000000, "aud": "https://ai.azure.com"}))
		self.assertEqual(token.expires_at, 2000000000.0)

	def test_lapsed_jwt_is_accepted_then_reported_expired(self) -> None:
		token = BearerToken.from_token(_jwt({"exp": 1000}), lifetime_s=600, now=5000.0)
		self.assertEqual(token.expires_at, 1000.0)
		self.assertTrue(token.is_expired(now=5000.0))

	def test_jwt_without_exp_falls_back_to_lifetime(self) -> None:
		token = BearerToken.from_token(_jwt({"sub": "user"}), lifetime_s=600, now=1000.0)
		self.assertEqual(token.expires_at, 1600.0)

	def test_opaque_token_gets_fixed_lifetime(self) -> None:
		token = BearerToken.from_token("opaque-token", lifetime_s=600, now=1000.0)
		self.assertEqual(token.expires_at, 1600.0)
		self.assertFalse(token.is_expired(now=1599.0))
		self.assertTrue(token.is_expired(now=1600.0))

	def test_malformed_jwt_payload_falls_back_to_lifetime(self) -> None:
		token = BearerToken.from_token("aaa.!!!not-base64!!!.ccc", lifetime_s=60, now=0.0)
		self.assertEqual(token.expires_at, 60.0)

	def test_expired_token_is_refused_before_use(self) -> None:
		token = BearerToken(token="stale", expires_at=time.time() - 10)
		with self.assertRaises(InvalidCredentialError) as ctx:
			credentials.require_active(token)
		self.assertIn("expired", str(ctx.exception))

	def test_active_token_passes(self) -> None:
		credentials.require_active(BearerToken(token="fresh", expires_at=time.time() + 300))
		credentials.require_active(SharedKey(key="k"))

	def test_secrets_stay_out_of_repr(self) -> None:
		self.assertNotIn("top-secret", repr(SharedKey(key="top-secret")))
		self.assertNotIn("top-secret", repr(BearerToken(token="top-secret", expires_at=1.0)))

	def test_describe_reports_remaining_lifetime(self) -> None:
		token = BearerToken(token="t", expires_at=time.time() + 120)
		self.assertRegex(credentials.describe(token), r"^bearer_token\(expires_in=1[12]\ds\)$")
