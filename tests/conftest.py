from __future__ import annotations

import base64
import hashlib
import hmac
import os

import pytest

from apisign.config import Settings

RFC6238_SEED = base64.b32encode(b"12345678901234567890").decode("ascii")
API_SECRET = base64.b64encode(bytes(range(32))).decode("ascii")


@pytest.fixture(autouse=True)
def isolate_settings_from_host_env(monkeypatch: pytest.MonkeyPatch):
    original_env_file = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    settings_env_keys: set[str] = {"HTTPX_LOG_LEVEL", "HTTPCORE_LOG_LEVEL"}
    for field in Settings.model_fields.values():
        if isinstance(field.alias, str):
            settings_env_keys.add(field.alias)

    for key in list(os.environ):
        if key in settings_env_keys:
            monkeypatch.delenv(key, raising=False)

    yield

    Settings.model_config["env_file"] = original_env_file


@pytest.fixture
def private_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    values = {
        "API_LINK": "https://api.example.test",
        "API_KEY": "demo-api-key-0001",
        "API_SECRET": API_SECRET,
        "OTP_SECRET": RFC6238_SEED,
        "OPEN_ORDERS_ENDPOINT": "/0/private/OpenOrders",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values


def reference_signature(api_secret: str, endpoint_path: str, nonce: str, body: str) -> str:
    digest = hashlib.sha256((nonce + body).encode("utf-8")).digest()
    mac = hmac.new(
        base64.b64decode(api_secret), endpoint_path.encode("utf-8") + digest, hashlib.sha512
    ).digest()
    return base64.b64encode(mac).decode("utf-8")
