from __future__ import annotations

from .request_id import RequestIdMiddleware, gate_outcome_ctx_var, principal_ctx_var, request_id_ctx_var
from .security_headers import SecurityHeadersMiddleware
from .session_gate import GateDecision, GateOutcome, SessionGateMiddleware, decide

__all__ = [
    "GateDecision",
    "GateOutcome",
    "RequestIdMiddleware",
    "SecurityHeadersMiddleware",
    "SessionGateMiddleware",
    "decide",
    "gate_outcome_ctx_var",
    "principal_ctx_var",
    "request_id_ctx_var",
]
