from __future__ import annotations

import json

import httpx
import pytest

from apisign import cli
from apisign.adapters.dispatcher import RequestDispatcher
from conftest import API_SECRET, reference_signature


def _patch_transport(monkeypatch: pytest.MonkeyPatch, handler) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    def _recording_handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def _factory(**kwargs) -> RequestDispatcher:
        kwargs.pop("transport", None)
        return RequestDispatcher(transport=httpx.MockTransport(_recording_handler), **kwargs)

    monkeypatch.setattr(cli, "RequestDispatcher", _factory)
    return seen


def test_sign_prints_reproducible_request(private_env, capsys) -> None:
    exit_code = cli.main(
        [
            "sign",
            "--path",
            "/private/OpenOrders",
            "--nonce",
            "1700000000000",
            "--otp",
            "123456",
            "--show-secrets",
        ]
    )

    assert exit_code == 0
    rendered = json.loads(capsys.readouterr().out)
    assert rendered["body"] == "nonce=1700000000000&otp=123456"
    assert rendered["url"] == "https://api.example.test/private/OpenOrders"
    assert rendered["headers"]["API-Key"] == private_env["API_KEY"]
    assert rendered["headers"]["API-Sign"] == reference_signature(
        API_SECRET, "/private/OpenOrders", "1700000000000", "nonce=1700000000000&otp=123456"
    )


def test_sign_masks_secrets_by_default(private_env, capsys) -> None:
    exit_code = cli.main(
        ["sign", "--path", "/0/private/Balance", "--nonce", "1", "--otp", "654321"]
    )

    out = capsys.readouterr().out
    assert exit_code == 0
    assert private_env["API_KEY"] not in out
    assert "654321" not in out
    assert reference_signature(API_SECRET, "/0/private/Balance", "1", "nonce=1&otp=654321") not in out


def test_sign_appends_extra_data_after_otp(private_env, capsys) -> None:
    cli.main(
        [
            "sign",
            "--path",
            "/0/private/OpenOrders",
            "--nonce",
            "7",
            "--otp",
            "000001",
            "--data",
            "trades=true",
            "--show-secrets",
        ]
    )

    rendered = json.loads(capsys.readouterr().out)
    assert rendered["body"] == "nonce=7&otp=000001&trades=true"


def test_sign_without_credentials_exits_with_error(capsys) -> None:
    exit_code = cli.main(["sign", "--path", "/0/private/Balance"])

    assert exit_code == 2
    assert "API_KEY" in capsys.readouterr().err


def test_sign_with_invalid_secret_exits_with_error(private_env, monkeypatch, capsys) -> None:
    monkeypatch.setenv("API_SECRET", "not!base64")

    exit_code = cli.main(["sign", "--path", "/0/private/Balance", "--otp", "123456"])

    assert exit_code == 2
    assert "InvalidSecretError" in capsys.readouterr().err


def test_invalid_settings_exit_with_error(monkeypatch, capsys) -> None:
    monkeypatch.setenv("OTP_DIGEST", "md5")

    assert cli.main(["server-time"]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_open_orders_lists_orders(private_env, monkeypatch, capsys) -> None:
    seen = _patch_transport(
        monkeypatch,
        lambda request: httpx.Response(
            200,
            json={"error": [], "result": {"open": {"OQCLML-BW3P3-BUCMWZ": {"status": "open"}}}},
        ),
    )

    exit_code = cli.main(["open-orders"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "List of open orders:" in out
    assert 'OQCLML-BW3P3-BUCMWZ: {"status": "open"}' in out
    request = seen[0]
    assert request.method == "POST"
    assert request.url == "https://api.example.test/0/private/OpenOrders"
    body = request.content.decode("utf-8")
    assert body.startswith("nonce=")
    assert "&otp=" in body
    nonce = body.split("&")[0].split("=")[1]
    assert request.headers["API-Sign"] == reference_signature(
        API_SECRET, "/0/private/OpenOrders", nonce, body
    )


def test_open_orders_reports_api_errors(private_env, monkeypatch, capsys) -> None:
    _patch_transport(
        monkeypatch,
        lambda request: httpx.Response(200, json={"error": ["EAPI:Invalid nonce"], "result": {}}),
    )

    assert cli.main(["open-orders"]) == 1
    assert "EAPI:Invalid nonce" in capsys.readouterr().err


def test_open_orders_transport_failure_exits_with_error(private_env, monkeypatch, capsys) -> None:
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    _patch_transport(monkeypatch, _refuse)

    assert cli.main(["open-orders"]) == 2
    assert "TransportError" in capsys.readouterr().err


def test_server_time_validates_schema(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.setenv("API_LINK", "https://api.example.test")
    schema_path = tmp_path / "server_time.json"
    schema_path.write_text(
        json.dumps(
            {
                "type": "object",
                "required": ["error", "result"],
                "properties": {
                    "error": {"type": "array"},
                    "result": {"type": "object", "required": ["unixtime"]},
                },
            }
        ),
        encoding="utf-8",
    )
    seen = _patch_transport(
        monkeypatch,
        lambda request: httpx.Response(200, json={"error": [], "result": {"unixtime": 1}}),
    )

    exit_code = cli.main(["server-time", "--schema", str(schema_path)])

    assert exit_code == 0
    assert seen[0].method == "GET"
    assert seen[0].url == "https://api.example.test/0/public/Time"
    assert json.loads(capsys.readouterr().out)["result"]["unixtime"] == 1


def test_asset_pairs_reports_every_schema_error(monkeypatch, tmp_path, capsys) -> None:
    schema_path = tmp_path / "asset_pairs.json"
    schema_path.write_text(
        json.dumps(
            {
                "type": "object",
                "required": ["error", "result"],
                "properties": {"error": {"type": "array"}, "result": {"type": "object"}},
            }
        ),
        encoding="utf-8",
    )
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, json={"error": "bad"}))

    exit_code = cli.main(["asset-pairs", "--schema", str(schema_path)])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "$.error" in err
    assert "'result' is a required property" in err


def test_schema_file_errors_exit_with_error(monkeypatch, tmp_path, capsys) -> None:
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, json={"error": []}))

    exit_code = cli.main(["server-time", "--schema", str(tmp_path / "missing.json")])

    assert exit_code == 2
    assert "Cannot load schema" in capsys.readouterr().err


def test_sign_with_fixed_otp_does_not_need_otp_secret(private_env, monkeypatch, capsys) -> None:
    monkeypatch.delenv("OTP_SECRET")

    exit_code = cli.main(
        [
            "sign",
            "--path",
            "/0/private/Balance",
            "--nonce",
            "5",
            "--otp",
            "111111",
            "--show-secrets",
        ]
    )

    assert exit_code == 0
    rendered = json.loads(capsys.readouterr().out)
    assert rendered["body"] == "nonce=5&otp=111111"
    assert rendered["headers"]["API-Sign"] == reference_signature(
        API_SECRET, "/0/private/Balance", "5", "nonce=5&otp=111111"
    )


def test_sign_without_otp_still_needs_otp_secret(private_env, monkeypatch, capsys) -> None:
    monkeypatch.delenv("OTP_SECRET")

    assert cli.main(["sign", "--path", "/0/private/Balance"]) == 2
    assert "OTP_SECRET" in capsys.readouterr().err


def test_open_orders_ignores_non_object_open_field(private_env, monkeypatch, capsys) -> None:
    _patch_transport(
        monkeypatch,
        lambda request: httpx.Response(200, json={"error": [], "result": {"open": ["OABC"]}}),
    )

    assert cli.main(["open-orders"]) == 0
    out = capsys.readouterr().out
    assert "List of open orders:" in out
    assert "OABC" not in out


def test_open_orders_reports_string_error_as_one_message(private_env, monkeypatch, capsys) -> None:
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, json={"error": "EAPI:Bad"}))

    assert cli.main(["open-orders"]) == 1
    err = capsys.readouterr().err
    err_lines = [line for line in err.splitlines() if line.startswith("API error")]
    assert err_lines == ["API error: EAPI:Bad"]
