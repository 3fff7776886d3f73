"""Webhook gate: verification followed by idempotent claiming."""

from __future__ import annotations

from .errors import AlreadyProcessedError
from .gate import DEFAULT_TTL_SECONDS, WebhookGate

__all__ = ["DEFAULT_TTL_SECONDS", "AlreadyProcessedError", "WebhookGate"]
