from __future__ import annotations

import base64
import binascii
import hashlib
import hmac

from apisign.errors import InvalidSecretError

API_KEY_HEADER = "API-Key"
API_SIGN_HEADER = "API-Sign"


def hash_payload(nonce: str, encoded_payload: str) -> bytes:
    """SHA-256 of the nonce immediately followed by the encoded payload."""
    return hashlib.sha256(f"{nonce}{encoded_payload}".encode("utf-8")).digest()


def build_message(nonce: str, encoded_payload: str, endpoint_path: str) -> bytes:
    """Endpoint path bytes followed by the 32-byte payload digest.

    ``endpoint_path`` is the path only (e.g. ``/0/private/OpenOrders``), never
    the full URL.
    """
    return endpoint_path.encode("utf-8") + hash_payload(nonce, encoded_payload)


def decode_api_secret(api_secret: str) -> bytes:
    try:
        secret = base64.b64decode(api_secret, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidSecretError("API_SECRET must be valid base64") from exc
    if not secret:
        raise InvalidSecretError("API_SECRET must not be empty")
    return secret


def sign(nonce: str, encoded_payload: str, endpoint_path: str, api_secret: str) -> str:
    secret = decode_api_secret(api_secret)
    message = build_message(nonce, encoded_payload, endpoint_path)
    digest = hmac.new(secret, message, hashlib.sha512).digest()
    return base64.b64encode(digest).decode("utf-8")


def build_auth_headers(api_key: str, signature: str) -> dict[str, str]:
    return {
        API_KEY_HEADER: api_key,
        API_SIGN_HEADER: signature,
    }
