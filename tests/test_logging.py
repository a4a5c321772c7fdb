"""JSON log lines carry request, principal and gate context."""

import json
import logging
import os
import sys
from pathlib import Path

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from portal import create_app
from portal.core.logging import JsonLogFormatter
from portal.middlewares import gate_outcome_ctx_var, principal_ctx_var, request_id_ctx_var
from fake_provider import FakeIdentityProvider, make_settings


def _record(message: str, **extra_data) -> logging.LogRecord:
    record = logging.LogRecord("portal.gate", logging.INFO, __file__, 1, message, None, None)
    record.extra_data = extra_data
    return record


def test_formatter_emits_context_fields():
    formatter = JsonLogFormatter(app_name="Milestone Portal", environment="test")
    tokens = [
        (request_id_ctx_var, request_id_ctx_var.set("req-1")),
        (principal_ctx_var, principal_ctx_var.set("user:u-1")),
        (gate_outcome_ctx_var, gate_outcome_ctx_var.set("redirect_to_login")),
    ]
    try:
        line = json.loads(formatter.format(_record("gate.redirect", path="/dashboard")))
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
    assert line["message"] == "gate.redirect"
    assert line["app"] == "Milestone Portal"
    assert line["env"] == "test"
    assert line["request_id"] == "req-1"
    assert line["principal"] == "user:u-1"
    assert line["gate"] == "redirect_to_login"
    assert line["path"] == "/dashboard"
    assert line["timestamp"].endswith("Z")


def test_formatter_redacts_credentials():
    line = json.loads(JsonLogFormatter().format(_record("otp.verify", access_token="secret", email="a***@x.com")))
    assert line["access_token"] == "[redacted]"
    assert line["email"] == "a***@x.com"
    assert "gate" not in line
    assert "app" not in line


def test_request_log_records_gate_outcome(caplog):
    client = TestClient(create_app(make_settings(), FakeIdentityProvider()), follow_redirects=False)
    with caplog.at_level(logging.INFO, logger="portal.request"):
        client.get("/dashboard")
    [completed] = [record for record in caplog.records if record.getMessage() == "request.completed"]
    assert completed.extra_data["gate"] == "redirect_to_login"
    assert completed.extra_data["status"] == 307
