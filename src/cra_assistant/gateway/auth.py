"""Bearer-token signing for the GLM API.

The configured credential is ``"<key id>.<secret>"``. Each request carries a
short-lived HS256 token whose payload names the key id and whose signature is
an HMAC-SHA256 over ``header.payload`` with the secret.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time

CREDENTIAL_SEPARATOR = "."
TOKEN_TTL_MS = 3_600_000

_HEADER = {"alg": "HS256", "sign_type": "SIGN"}


class CredentialError(ValueError):
    """The configured credential is missing or not in ``id.secret`` form."""


def split_credential(api_key: str) -> tuple[str, str]:
    """Return ``(key_id, secret)`` or raise CredentialError."""
    api_key = (api_key or "").strip()
    if not api_key:
        raise CredentialError("API key is not configured")
    key_id, sep, secret = api_key.partition(CREDENTIAL_SEPARATOR)
    if not sep or not key_id or not secret:
        raise CredentialError("API key must have the form '<id>.<secret>'")
    return key_id, secret


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_json(data: dict) -> str:
    return _b64url(json.dumps(data, separators=(",", ":")).encode("utf-8"))


def generate_token(api_key: str, now_ms: int | None = None, ttl_ms: int = TOKEN_TTL_MS) -> str:
    key_id, secret = split_credential(api_key)
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    payload = {"api_key": key_id, "exp": now_ms + ttl_ms, "timestamp": now_ms}
    signing_input = f"{_b64url_json(_HEADER)}.{_b64url_json(payload)}"
    signature = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()
    return f"{signing_input}.{_b64url(signature)}"
