from __future__ import annotations

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from apisign.auth.otp import OTP_DIGESTS, OTP_MAX_DIGITS, OTP_MIN_DIGITS, OtpGenerator
from apisign.errors import ConfigurationError
from apisign.models import Credentials


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_link: str = Field(default="https://api.kraken.com", alias="API_LINK")
    api_key: SecretStr | None = Field(default=None, alias="API_KEY")
    api_secret: SecretStr | None = Field(default=None, alias="API_SECRET")
    otp_secret: SecretStr | None = Field(default=None, alias="OTP_SECRET")

    open_orders_endpoint: str = Field(default="/0/private/OpenOrders", alias="OPEN_ORDERS_ENDPOINT")
    server_time_endpoint: str = Field(default="/0/public/Time", alias="SERVER_TIME_ENDPOINT")
    asset_pair_endpoint: str = Field(
        default="/0/public/AssetPairs?pair=XXBTZUSD", alias="ASSET_PAIR_ENDPOINT"
    )

    request_timeout_seconds: float = Field(default=10.0, alias="REQUEST_TIMEOUT_SECONDS")
    otp_digits: int = Field(default=6, alias="OTP_DIGITS")
    otp_interval_seconds: int = Field(default=30, alias="OTP_INTERVAL_SECONDS")
    otp_digest: str = Field(default="sha1", alias="OTP_DIGEST")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("api_link")
    def validate_api_link(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("API_LINK must be an http(s) URL")
        return cleaned.rstrip("/")

    @field_validator("open_orders_endpoint", "server_time_endpoint", "asset_pair_endpoint")
    def validate_endpoint_path(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned.startswith("/"):
            raise ValueError("endpoint paths must start with '/'")
        return cleaned

    @field_validator("request_timeout_seconds")
    def validate_request_timeout_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be > 0")
        return value

    @field_validator("otp_digits")
    def validate_otp_digits(cls, value: int) -> int:
        if not OTP_MIN_DIGITS <= value <= OTP_MAX_DIGITS:
            raise ValueError(f"OTP_DIGITS must be between {OTP_MIN_DIGITS} and {OTP_MAX_DIGITS}")
        return value

    @field_validator("otp_interval_seconds")
    def validate_otp_interval_seconds(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("OTP_INTERVAL_SECONDS must be > 0")
        return value

    @field_validator("otp_digest")
    def validate_otp_digest(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in OTP_DIGESTS:
            raise ValueError(f"OTP_DIGEST must be one of {', '.join(sorted(OTP_DIGESTS))}")
        return normalized

    def credentials(self, *, require_otp_seed: bool = True) -> Credentials:
        """Resolve private API credentials.

        With ``require_otp_seed=False`` a missing OTP_SECRET is allowed and
        yields an empty seed, for callers that supply the code themselves.
        """
        resolved = {
            name: secret.get_secret_value().strip() if secret is not None else ""
            for name, secret in (
                ("API_KEY", self.api_key),
                ("API_SECRET", self.api_secret),
                ("OTP_SECRET", self.otp_secret),
            )
        }
        missing = [
            name
            for name, value in resolved.items()
            if not value and (require_otp_seed or name != "OTP_SECRET")
        ]
        if missing:
            raise ConfigurationError(
                "Missing private API credentials: " + ", ".join(missing) + " are required"
            )
        return Credentials(
            api_key=resolved["API_KEY"],
            api_secret=resolved["API_SECRET"],
            otp_seed=resolved["OTP_SECRET"],
        )

    def otp_generator(self) -> OtpGenerator:
        return OtpGenerator(
            digits=self.otp_digits,
            interval=self.otp_interval_seconds,
            digest=self.otp_digest,
        )
