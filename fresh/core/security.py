"""Security primitives for secret hashing and credential signing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
import uuid
from dataclasses import dataclass
from typing import Any

PBKDF2_ALGORITHM = "pbkdf2_sha256"
PBKDF2_ROUNDS = 120_000

_SIGNING_DIGESTS = {
    "HS256": hashlib.sha256,
    "HS384": hashlib.sha384,
    "HS512": hashlib.sha512,
}


@dataclass(frozen=True)
class SecretHash:
    """A cleartext secret paired with its one-way hash."""

    secret: str
    hash: str


def _b64url_encode(raw: bytes) -> str:
    """Return URL-safe base64 string without padding."""
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    """Decode URL-safe base64 string with optional missing padding."""
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def generate_key() -> str:
    """Return a fresh random key for sessions and emailed tokens."""
    return uuid.uuid4().hex


def hash_secret(secret: str) -> SecretHash:
    """Hash a password or key using PBKDF2-HMAC-SHA256 with random salt."""
    if not isinstance(secret, str) or not secret:
        raise ValueError("Cannot hash an empty secret")
    salt = os.urandom(16)
    derived = hashlib.pbkdf2_hmac(
        "sha256", secret.encode("utf-8"), salt, PBKDF2_ROUNDS
    )
    encoded = (
        f"{PBKDF2_ALGORITHM}${PBKDF2_ROUNDS}"
        f"${_b64url_encode(salt)}${_b64url_encode(derived)}"
    )
    return SecretHash(secret=secret, hash=encoded)


def verify_secret(secret: str, stored_hash: str) -> bool:
    """Verify a secret against a stored PBKDF2 hash; never raises."""
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != PBKDF2_ALGORITHM:
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
        derived = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, rounds)
    except Exception:
        return False

    return hmac.compare_digest(derived, expected)


def _digest_for(algorithm: str):
    try:
        return _SIGNING_DIGESTS[algorithm.upper()]
    except KeyError as exc:
        raise ValueError(f"Unsupported signing algorithm: {algorithm}") from exc


def build_signed_token(
    payload: dict[str, Any], secret_key: str, algorithm: str = "HS256"
) -> str:
    """Create compact signed token using JWT 3-part structure."""
    digest = _digest_for(algorithm)
    header = {"alg": algorithm.upper(), "typ": "JWT"}
    header_part = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_part = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    signature = hmac.new(secret_key.encode("utf-8"), signing_input, digest).digest()
    signature_part = _b64url_encode(signature)
    return f"{header_part}.{payload_part}.{signature_part}"


def decode_signed_token(
    token: str, secret_key: str, algorithm: str = "HS256"
) -> dict[str, Any]:
    """Decode and verify compact signed token, raising ``ValueError`` on failure."""
    digest = _digest_for(algorithm)
    try:
        header_part, payload_part, signature_part = token.split(".", 2)
        header = json.loads(_b64url_decode(header_part).decode("utf-8"))
        got_sig = _b64url_decode(signature_part)
    except Exception as exc:
        raise ValueError("Malformed token") from exc

    if not isinstance(header, dict) or str(header.get("alg") or "") != algorithm.upper():
        raise ValueError("Invalid token algorithm")

    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    expected_sig = hmac.new(secret_key.encode("utf-8"), signing_input, digest).digest()
    if not hmac.compare_digest(expected_sig, got_sig):
        raise ValueError("Invalid token signature")

    try:
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except Exception as exc:
        raise ValueError("Invalid token payload") from exc
    if not isinstance(payload, dict):
        raise ValueError("Invalid token payload")

    exp = int(payload.get("exp") or 0)
    if exp and exp < int(time.time()):
        raise ValueError("Token expired")

    return payload
