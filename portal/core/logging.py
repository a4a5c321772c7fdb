from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..middlewares import gate_outcome_ctx_var, principal_ctx_var, request_id_ctx_var

# Keys that must never reach a log line, even when passed through ``extra_data``.
REDACTED_KEYS = frozenset({"access_token", "refresh_token", "token", "code_verifier", "otp_session"})


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record, tagged with the request and session-gate context.

    ``gate`` carries the gate outcome for the current request (``allow``,
    ``redirect_to_login``, ``redirect_from_auth``) so that every line written
    while serving a request can be filtered by how the gate treated it.
    """

    def __init__(self, app_name: str | None = None, environment: str | None = None) -> None:
        super().__init__()
        self.app_name = app_name
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.app_name:
            payload["app"] = self.app_name
        if self.environment:
            payload["env"] = self.environment
        request_id = request_id_ctx_var.get()
        if request_id:
            payload["request_id"] = request_id
        principal = principal_ctx_var.get()
        if principal:
            payload["principal"] = principal
        gate_outcome = gate_outcome_ctx_var.get()
        if gate_outcome:
            payload["gate"] = gate_outcome
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            payload.update({key: "[redacted]" if key in REDACTED_KEYS else value for key, value in extra.items()})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(
    level: int | str = logging.INFO,
    app_name: str | None = None,
    environment: str | None = None,
) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter(app_name=app_name, environment=environment))
    logging.root.handlers = [handler]
    logging.root.setLevel(level)
