"""Tests for PKCE helpers and authorization URLs."""

from __future__ import annotations

import base64
import hashlib
import re
from urllib.parse import parse_qs, urlparse

from outlook_mcp.auth.config import AuthConfig
from outlook_mcp.auth.pkce import (
    build_authorization_url,
    generate_code_challenge,
    generate_code_verifier,
    token_url,
)


class TestCodeVerifier:
    """Tests for generate_code_verifier."""

    def test_is_url_safe_without_padding(self) -> None:
        """Verifier uses only unreserved URL characters."""
        verifier = generate_code_verifier()

        assert len(verifier) == 43
        assert re.fullmatch(r"[A-Za-z0-9_-]+", verifier)

    def test_is_unique(self) -> None:
        """Each call yields a new verifier."""
        assert len({generate_code_verifier() for _ in range(10)}) == 10


class TestCodeChallenge:
    """Tests for generate_code_challenge."""

    def test_matches_rfc7636_example(self) -> None:
        """S256 challenge matches the RFC 7636 Appendix B vector."""
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_non_ascii_verifier_is_hashed_as_utf8(self) -> None:
        """Non-ASCII input is hashed rather than rejected."""
        digest = hashlib.sha256("vérificateur".encode("utf-8")).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

        assert generate_code_challenge("vérificateur") == expected

    def test_is_deterministic(self) -> None:
        """Same verifier, same challenge."""
        verifier = generate_code_verifier()
        assert generate_code_challenge(verifier) == generate_code_challenge(verifier)


class TestAuthorizationUrl:
    """Tests for build_authorization_url."""

    def test_contains_pkce_parameters(self, auth_config: AuthConfig) -> None:
        """The URL carries client id, challenge and S256 method."""
        url, state = build_authorization_url(auth_config, "challenge-value", state="xyz")
        parsed = urlparse(url)
        query = parse_qs(parsed.query)

        assert state == "xyz"
        assert parsed.netloc == "login.microsoftonline.com"
        assert parsed.path == "/test-tenant-id/oauth2/v2.0/authorize"
        assert query["client_id"] == ["test-client-id"]
        assert query["response_type"] == ["code"]
        assert query["code_challenge"] == ["challenge-value"]
        assert query["code_challenge_method"] == ["S256"]
        assert query["state"] == ["xyz"]
        assert "offline_access" in query["scope"][0].split(" ")

    def test_generates_state(self, auth_config: AuthConfig) -> None:
        """A random state is generated when none is given."""
        _, first = build_authorization_url(auth_config, "c")
        _, second = build_authorization_url(auth_config, "c")

        assert len(first) == 32
        assert first != second

    def test_common_authority_without_tenant(self) -> None:
        """Without a tenant id the 'common' authority is used."""
        config = AuthConfig(client_id="abc")

        assert token_url(config) == (
            "https://login.microsoftonline.com/common/oauth2/v2.0/token"
        )
