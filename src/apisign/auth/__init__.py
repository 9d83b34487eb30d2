"""Request authentication: nonces, one-time passwords, payload encoding and signatures."""

from apisign.auth.encoding import encode_payload
from apisign.auth.nonce import NonceSource, next_nonce
from apisign.auth.otp import OtpGenerator, decode_otp_seed, generate_otp
from apisign.auth.signing import (
    API_KEY_HEADER,
    API_SIGN_HEADER,
    build_auth_headers,
    build_message,
    decode_api_secret,
    hash_payload,
    sign,
)

__all__ = [
    "API_KEY_HEADER",
    "API_SIGN_HEADER",
    "NonceSource",
    "OtpGenerator",
    "build_auth_headers",
    "build_message",
    "decode_api_secret",
    "decode_otp_seed",
    "encode_payload",
    "generate_otp",
    "hash_payload",
    "next_nonce",
    "sign",
]
