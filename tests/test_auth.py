import unittest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fakes import make_token
from prodmon.core.config import Settings
from prodmon.core.errors import AuthenticationRequired
from prodmon.dashboard.auth import decode_claims, is_admin, resolve_token, subject

class TestTokenClaims(unittest.TestCase):
    """Unverified ID token decoding"""

    def test_decode_claims(self):
        token = make_token({"sub": "abc", "email": "a@example.com"})
        self.assertEqual(decode_claims(token)["email"], "a@example.com")
        self.assertEqual(subject(token), "abc")

    def test_malformed_tokens(self):
        for token in (None, "", "not-a-jwt", "a.!!!.c"):
            self.assertEqual(decode_claims(token), {})
        self.assertIsNone(subject("not-a-jwt"))

    def test_admin_group(self):
        self.assertTrue(is_admin(make_token({"cognito:groups": ["admins", "ops"]})))
        self.assertFalse(is_admin(make_token({"cognito:groups": ["ops"]})))
        self.assertFalse(is_admin(make_token({"cognito:groups": "admins"})))
        self.assertFalse(is_admin(make_token({"sub": "x"})))
        self.assertTrue(is_admin(make_token({"cognito:groups": ["ops"]}), group="ops"))

class TestResolveToken(unittest.TestCase):
    """Header first, then the configured token"""

    def test_header_with_and_without_bearer(self):
        self.assertEqual(resolve_token("Bearer abc.def.ghi"), "abc.def.ghi")
        self.assertEqual(resolve_token("abc.def.ghi"), "abc.def.ghi")

    def test_fallback(self):
        self.assertEqual(resolve_token(None, "fallback"), "fallback")
        self.assertEqual(resolve_token("  ", "fallback"), "fallback")

    def test_missing_token(self):
        with self.assertRaises(AuthenticationRequired) as ctx:
            resolve_token(None, None)
        self.assertEqual(str(ctx.exception), "Login required (no idToken)")
        self.assertEqual(ctx.exception.status_code, 401)

class TestHostedUiUrls(unittest.TestCase):
    """Login/logout URLs derived from the Cognito settings"""

    def test_urls_from_domain(self):
        s = Settings(
            cognito_domain="https://auth.example.com/",
            cognito_user_pool_client_id="client123",
            redirect_sign_in="http://localhost:5173/",
            redirect_sign_out="http://localhost:5173/bye",
        )
        self.assertEqual(s.cognito_host, "auth.example.com")
        self.assertTrue(s.login_url.startswith("https://auth.example.com/oauth2/authorize?"))
        self.assertIn("client_id=client123", s.login_url)
        self.assertIn("response_type=code", s.login_url)
        self.assertIn("scope=openid+email", s.login_url)
        self.assertIn("redirect_uri=http%3A%2F%2Flocalhost%3A5173%2F", s.login_url)
        self.assertTrue(s.logout_url.startswith("https://auth.example.com/logout?"))
        self.assertIn("logout_uri=http%3A%2F%2Flocalhost%3A5173%2Fbye", s.logout_url)

    def test_no_domain_no_urls(self):
        s = Settings(cognito_domain="")
        self.assertEqual(s.login_url, "")
        self.assertEqual(s.logout_url, "")

def test_settings_from_environment(mock_env_vars):
    """Environment variables feed the settings"""
    s = Settings()
    assert s.appsync_url.endswith("/graphql")
    assert s.login_url.startswith("https://auth.example.com/oauth2/authorize?")
    assert s.ota_timeout == 300.0

if __name__ == '__main__':
    unittest.main()
