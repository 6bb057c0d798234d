"""Glue between a host's request hook and the policy engine."""

from __future__ import annotations

import logging
from typing import Protocol

from trackgate.core.base import Action, BrowsingContext, RequestKind, Verdict
from trackgate.core.ledger import SettingsLedger
from trackgate.core.policy import PolicyEngine

logger = logging.getLogger(__name__)


class CredentialStripper(Protocol):
    def clobber(self, origin: str) -> None:
        """Remove stored cookies for *origin*. Must be idempotent."""
        ...


class NullStripper:
    """Stripper for hosts that strip credentials on the request itself."""

    def clobber(self, origin: str) -> None:
        return None


class InterceptionAdapter:
    """Classify one request: ALLOW -> permit, BLOCK -> deny,
    COOKIEBLOCK -> permit without credentials.

    Decision events are forwarded to the ledger. While disabled, every request
    is permitted and nothing is recorded.
    """

    def __init__(self, engine: PolicyEngine, ledger: SettingsLedger, enabled: bool = True) -> None:
        self.engine = engine
        self.ledger = ledger
        self.enabled = enabled

    def classify(
        self,
        request_url: str,
        context: BrowsingContext | None,
        kind: RequestKind = RequestKind.OTHER,
    ) -> Verdict:
        if not self.enabled:
            return Verdict.ALLOW

        try:
            verdict, event = self.engine.evaluate(request_url, context, kind)
            self.ledger.record(event)
            if verdict is Verdict.BLOCK:
                return verdict
            if not self.engine.is_blockable(request_url, context, kind):
                return verdict
            # The user explicitly allowed this host.
            if event is not None and event.tag is Action.USERNOACTION:
                return verdict

            cookie_verdict, cookie_event = self.engine.should_cookieblock(request_url, context)
            self.ledger.record(cookie_event)
            return cookie_verdict
        except Exception:
            logger.exception("Failed to classify %s, allowing it", request_url)
            return Verdict.ALLOW

    def activate(self) -> None:
        self.ledger.clear_all()
        self.enabled = True

    def deactivate(self) -> None:
        self.ledger.clear_all()
        self.enabled = False
