"""
Google Identity credentials.

Reading a credential happens in two stages. ``decode_credential`` only parses
the payload segment and establishes nothing about who issued it.
``verify_credential`` checks the signature, audience, issuer and expiry
against Google's published keys and is what identity decisions must rest on.
"""

import base64
import binascii
import json
import logging
import time
from typing import Any

import httpx
from jose import JWTError, jwt
from pydantic import ValidationError

from pinauth.config import GOOGLE_ISSUERS
from pinauth.schemas.auth import GoogleCredential

logger = logging.getLogger(__name__)

_jwks_cache: dict[str, dict[str, Any]] = {}
_jwks_cache_times: dict[str, float] = {}
JWKS_CACHE_TTL = 3600

_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def _decode_segment(segment: str) -> bytes:
    padded = segment.translate(_URLSAFE_TO_STANDARD)
    padded += "=" * (-len(padded) % 4)
    return base64.b64decode(padded, validate=True)


def decode_credential(credential: str) -> GoogleCredential:
    """Parse the payload of a compact JWS without verifying it."""
    parts = credential.split(".")
    if len(parts) != 3 or not parts[1]:
        raise ValueError("Credential is not a compact JWS")

    try:
        raw = _decode_segment(parts[1]).decode("utf-8")
        payload = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Credential payload is unreadable: {e}") from None

    if not isinstance(payload, dict):
        raise ValueError("Credential payload is not an object")

    try:
        return GoogleCredential.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"Credential payload is missing claims: {e}") from None


async def _fetch_jwks(issuer_url: str) -> dict:
    now = time.time()
    cached = _jwks_cache.get(issuer_url)
    cache_time = _jwks_cache_times.get(issuer_url, 0)
    if cached and (now - cache_time) < JWKS_CACHE_TTL:
        return cached

    discovery_url = f"{issuer_url.rstrip('/')}/.well-known/openid-configuration"
    async with httpx.AsyncClient(timeout=10) as client:
        disc_resp = await client.get(discovery_url)
        disc_resp.raise_for_status()
        jwks_uri = disc_resp.json()["jwks_uri"]

        jwks_resp = await client.get(jwks_uri)
        jwks_resp.raise_for_status()
        jwks = jwks_resp.json()
        _jwks_cache[issuer_url] = jwks
        _jwks_cache_times[issuer_url] = now
        return jwks


async def verify_credential(
    credential: str,
    issuer_url: str,
    client_id: str,
) -> GoogleCredential:
    try:
        jwks = await _fetch_jwks(issuer_url)
    except httpx.HTTPError as e:
        logger.error("Failed to fetch Google JWKS from %s: %s", issuer_url, e)
        raise ValueError(f"Failed to contact Google: {e}") from None

    try:
        payload = jwt.decode(
            credential,
            jwks,
            algorithms=["RS256"],
            audience=client_id,
            issuer=GOOGLE_ISSUERS,
            options={
                "verify_exp": True,
                "verify_at_hash": False,
            },
        )
    except JWTError as e:
        raise ValueError(f"Invalid Google credential: {e}") from None

    try:
        return GoogleCredential.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"Credential payload is missing claims: {e}") from None
