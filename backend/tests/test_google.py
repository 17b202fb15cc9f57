import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from pinauth.utils import google
from pinauth.utils.google import decode_credential, verify_credential

CLIENT_ID = "client-123.apps.googleusercontent.com"
ISSUER_URL = "https://accounts.google.com"


@pytest.fixture(scope="module")
def signing_key() -> tuple[str, dict]:
    """An RSA private key in PEM form and its public JWKS."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")

    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = "test-key"
    public_jwk["use"] = "sig"
    return private_pem, {"keys": [public_jwk]}


@pytest.fixture
def fake_jwks(monkeypatch, signing_key):
    _, jwks = signing_key

    async def fetch(issuer_url: str) -> dict:
        return jwks

    monkeypatch.setattr(google, "_fetch_jwks", fetch)
    return jwks


def _signed(private_pem: str, claims: dict) -> str:
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": "test-key"})


@pytest.fixture
def google_payload() -> dict:
    return {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "110169484474386276334",
        "email": "jane@example.com",
        "name": "Jane Doe",
        "given_name": "Jane",
        "family_name": "Doe",
    }


class TestDecodeCredential:
    """Tests for reading a credential without verifying it."""

    def test_decode_payload(self, make_credential, google_payload):
        identity = decode_credential(make_credential(google_payload))
        assert identity.email == google_payload["email"]
        assert identity.sub == google_payload["sub"]
        assert identity.given_name == "Jane"

    def test_decode_utf8_names(self, make_credential, google_payload):
        google_payload["name"] = "José Müller"
        google_payload["family_name"] = "Müller"

        identity = decode_credential(make_credential(google_payload))
        assert identity.name == "José Müller"
        assert identity.family_name == "Müller"

    def test_optional_profile_claims(self, make_credential):
        identity = decode_credential(make_credential({"sub": "1", "email": "a@example.com"}))
        assert identity.picture is None
        assert identity.name is None

    def test_missing_email_is_malformed(self, make_credential, google_payload):
        del google_payload["email"]
        with pytest.raises(ValueError):
            decode_credential(make_credential(google_payload))

    def test_empty_email_is_malformed(self, make_credential, google_payload):
        google_payload["email"] = ""
        with pytest.raises(ValueError):
            decode_credential(make_credential(google_payload))

    @pytest.mark.parametrize(
        "credential",
        [
            "",
            "only-one-part",
            "two.parts",
            "a..c",
            "a.!!!not-base64!!!.c",
            "a.bm90IGpzb24.c",  # "not json"
            "a.WzEsIDJd.c",  # "[1, 2]"
            "a._-8.c",  # invalid UTF-8
        ],
    )
    def test_malformed_credentials(self, credential):
        with pytest.raises(ValueError):
            decode_credential(credential)


class TestVerifyCredential:
    """Tests for signature and claim verification."""

    @pytest.mark.asyncio
    async def test_valid_signature(self, signing_key, fake_jwks, google_payload):
        private_pem, _ = signing_key
        google_payload["exp"] = int(time.time()) + 300
        credential = _signed(private_pem, google_payload)

        identity = await verify_credential(credential, ISSUER_URL, CLIENT_ID)
        assert identity.email == google_payload["email"]

    @pytest.mark.asyncio
    async def test_short_issuer_is_accepted(self, signing_key, fake_jwks, google_payload):
        private_pem, _ = signing_key
        google_payload["iss"] = "accounts.google.com"
        google_payload["exp"] = int(time.time()) + 300
        credential = _signed(private_pem, google_payload)

        identity = await verify_credential(credential, ISSUER_URL, CLIENT_ID)
        assert identity.sub == google_payload["sub"]

    @pytest.mark.asyncio
    async def test_wrong_audience(self, signing_key, fake_jwks, google_payload):
        private_pem, _ = signing_key
        google_payload["aud"] = "someone-else"
        google_payload["exp"] = int(time.time()) + 300

        with pytest.raises(ValueError):
            await verify_credential(_signed(private_pem, google_payload), ISSUER_URL, CLIENT_ID)

    @pytest.mark.asyncio
    async def test_wrong_issuer(self, signing_key, fake_jwks, google_payload):
        private_pem, _ = signing_key
        google_payload["iss"] = "https://evil.example.com"
        google_payload["exp"] = int(time.time()) + 300

        with pytest.raises(ValueError):
            await verify_credential(_signed(private_pem, google_payload), ISSUER_URL, CLIENT_ID)

    @pytest.mark.asyncio
    async def test_expired(self, signing_key, fake_jwks, google_payload):
        private_pem, _ = signing_key
        google_payload["exp"] = int(time.time()) - 60

        with pytest.raises(ValueError):
            await verify_credential(_signed(private_pem, google_payload), ISSUER_URL, CLIENT_ID)

    @pytest.mark.asyncio
    async def test_unsigned_credential(self, fake_jwks, make_credential, google_payload):
        google_payload["exp"] = int(time.time()) + 300

        with pytest.raises(ValueError):
            await verify_credential(make_credential(google_payload), ISSUER_URL, CLIENT_ID)
