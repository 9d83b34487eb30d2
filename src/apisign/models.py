from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from apisign.auth.signing import API_KEY_HEADER, API_SIGN_HEADER
from apisign.security.redaction import sanitize_mapping, sanitize_text

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class Credentials:
    """Caller-owned long-lived secrets for one private API account."""

    api_key: str = field(repr=False)
    api_secret: str = field(repr=False)
    otp_seed: str = field(repr=False)


@dataclass(frozen=True, repr=False)
class SignedRequest:
    url: str
    endpoint_path: str
    nonce: str
    body: str
    headers: Mapping[str, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def api_key(self) -> str:
        return self.headers[API_KEY_HEADER]

    @property
    def signature(self) -> str:
        return self.headers[API_SIGN_HEADER]

    def redacted(self) -> dict[str, object]:
        return {
            "url": self.url,
            "endpoint_path": self.endpoint_path,
            "nonce": self.nonce,
            "body": sanitize_text(self.body),
            "headers": sanitize_mapping(dict(self.headers)),
        }

    def __repr__(self) -> str:
        return f"SignedRequest(url={self.url!r}, nonce={self.nonce!r})"
