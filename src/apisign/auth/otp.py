from __future__ import annotations

import base64
import binascii
import hashlib
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pyotp

from apisign.errors import ClockError, InvalidSecretError

OTP_MIN_DIGITS = 6
OTP_MAX_DIGITS = 10

OTP_DIGESTS: dict[str, Callable[..., object]] = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


def _normalize_seed(otp_seed: str) -> str:
    return "".join(str(otp_seed).split()).upper()


def decode_otp_seed(otp_seed: str) -> bytes:
    """Decode a base32 OTP seed (padding optional) into raw key bytes."""
    normalized = _normalize_seed(otp_seed)
    padding = "=" * (-len(normalized) % 8)
    try:
        key = base64.b32decode(normalized + padding, casefold=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidSecretError("OTP_SECRET must be valid base32") from exc
    if not key:
        raise InvalidSecretError("OTP_SECRET must not be empty")
    return key


@dataclass(frozen=True)
class OtpGenerator:
    """RFC 6238 time-based one-time passwords.

    ``clock`` returns Unix time in seconds and exists so tests can pin the time
    step. Codes are stable for the whole ``interval``.
    """

    digits: int = 6
    interval: int = 30
    digest: str = "sha1"
    clock: Callable[[], float] = field(default=time.time, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not OTP_MIN_DIGITS <= self.digits <= OTP_MAX_DIGITS:
            raise ValueError(f"OTP digits must be between {OTP_MIN_DIGITS} and {OTP_MAX_DIGITS}")
        if self.interval <= 0:
            raise ValueError("OTP interval must be > 0")
        if self.digest not in OTP_DIGESTS:
            raise ValueError(f"Unsupported OTP digest: {self.digest}")

    def totp(self, otp_seed: str) -> pyotp.TOTP:
        decode_otp_seed(otp_seed)
        return pyotp.TOTP(
            _normalize_seed(otp_seed),
            digits=self.digits,
            digest=OTP_DIGESTS[self.digest],
            interval=self.interval,
        )

    def generate(self, otp_seed: str) -> str:
        totp = self.totp(otp_seed)
        now = float(self.clock())
        if now < 0:
            raise ClockError(f"system clock reports {now} s, which is before the Unix epoch")
        return totp.at(datetime.fromtimestamp(now, UTC))

    def time_step(self) -> int:
        return int(float(self.clock()) // self.interval)


def generate_otp(otp_seed: str, clock: Callable[[], float] = time.time) -> str:
    return OtpGenerator(clock=clock).generate(otp_seed)
