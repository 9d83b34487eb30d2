from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "***REDACTED***"

SENSITIVE_KEYS = frozenset(
    {
        "API_KEY",
        "API_SECRET",
        "API_SIGN",
        "OTP",
        "OTP_SECRET",
        "SECRET",
        "SIGNATURE",
        "AUTHORIZATION",
        "TOKEN",
        "PASSWORD",
    }
)

# Keys compared with separators removed, so "API-Sign", "api_sign" and "apisign" agree.
_COMPACT_KEYS = frozenset(key.replace("_", "").casefold() for key in SENSITIVE_KEYS)
_SENSITIVE_SUFFIXES = ("secret", "signature", "token", "password")

_HEADER_LINE_PATTERN = re.compile(
    r"(?im)\b(api-key|api-sign|authorization|api_secret|otp_secret)(\s*[:=]\s*)"
    r"(?:bearer\s+)?[^\s,;]+"
)
_FORM_FIELD_PATTERN = re.compile(r"(?i)(^|[?&\s])(otp|signature|token)=([^&\s]*)")
_JSON_FIELD_PATTERN = re.compile(
    r'(?i)("(?:'
    + "|".join(sorted(key.casefold() for key in SENSITIVE_KEYS))
    + r')"\s*:\s*")([^"\\]*)(")'
)


def _compact(key: object) -> str:
    return re.sub(r"[-_\s]", "", str(key)).casefold()


def is_sensitive_key(key: object) -> bool:
    compact = _compact(key)
    return compact in _COMPACT_KEYS or compact.endswith(_SENSITIVE_SUFFIXES)


def redact_value(value: str) -> str:
    """Keep the first and last four characters of long values; star out the rest."""
    if not value:
        return REDACTED
    if len(value) <= 8:
        return "*" * len(value)
    return value[:4] + "*" * (len(value) - 8) + value[-4:]


def sanitize_mapping(d: Mapping[str, Any]) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in d.items():
        name = str(key)
        if not is_sensitive_key(name):
            sanitized[name] = redact_data(value)
        elif value is None:
            sanitized[name] = REDACTED
        else:
            sanitized[name] = redact_value(str(value))
    return sanitized


def sanitize_text(text: str, known_secrets: Iterable[str] = ()) -> str:
    """Mask API keys, signatures and OTP codes inside free-form text.

    Covers ``API-Key: ...`` style header lines, ``otp=...`` form fields and
    JSON string fields named after a sensitive key. Any ``known_secrets`` are
    masked wherever they occur.
    """
    redacted = str(text)
    for secret in known_secrets:
        if secret:
            redacted = redacted.replace(secret, redact_value(secret))

    redacted = _HEADER_LINE_PATTERN.sub(r"\1\2[REDACTED]", redacted)
    redacted = _FORM_FIELD_PATTERN.sub(
        lambda m: f"{m.group(1)}{m.group(2)}={redact_value(m.group(3))}", redacted
    )
    return _JSON_FIELD_PATTERN.sub(
        lambda m: f"{m.group(1)}{redact_value(m.group(2))}{m.group(3)}", redacted
    )


def redact_data(value: Any) -> Any:
    """Walk mappings, lists and tuples, masking sensitive keys and text."""
    if isinstance(value, Mapping):
        return sanitize_mapping(value)
    if isinstance(value, list):
        return [redact_data(item) for item in value]
    if isinstance(value, tuple):
        return tuple(redact_data(item) for item in value)
    if isinstance(value, str):
        return sanitize_text(value)
    return value
