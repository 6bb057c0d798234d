"""Policy engine — decides whether a third-party request is allowed, blocked
or cookie-blocked.

Accept requests that are first-party (belong to the top-level document) or
use a whitelisted scheme. For third-party requests, in order:

  * Block requests whose host is on the user's red list.
  * Ignore (allow) requests whose host is on the green list, whose host or
    base domain is on the yellow list, or whose host is preloaded.
  * Block requests whose base domain the heuristic has flagged.
  * Allow everything else.

Cookie-blocking is a separate question asked by the interception layer for
requests that were not blocked outright (see :meth:`should_cookieblock`).

Nothing here raises for bad input: a request that cannot be classified is
allowed and a diagnostic is logged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from trackgate.core.base import (
    Action,
    BrowsingContext,
    Decision,
    DecisionEvent,
    RequestKind,
    Verdict,
)
from trackgate.core.party import (
    get_base_domain,
    get_host,
    is_third_party,
    is_whitelisted_scheme,
)
from trackgate.core.rules import RuleLists, RuleSnapshot

if TYPE_CHECKING:
    from trackgate.core.intercept import CredentialStripper

logger = logging.getLogger(__name__)


class PolicyEngine:
    def __init__(
        self,
        rules: RuleLists,
        stripper: CredentialStripper | None = None,
        extra_whitelisted_schemes: frozenset[str] = frozenset(),
    ) -> None:
        self.rules = rules
        self.stripper = stripper
        self.extra_whitelisted_schemes = extra_whitelisted_schemes

    # -- gate ------------------------------------------------------------------

    def is_blockable(
        self,
        location: str,
        context: BrowsingContext | None,
        kind: RequestKind = RequestKind.OTHER,
    ) -> bool:
        """Should this request be considered for blocking at all?

        It must have a non-whitelisted scheme, must not be a top-level
        document load, and must be third-party to its top-level document.
        """
        if is_whitelisted_scheme(location, self.extra_whitelisted_schemes):
            return False
        if kind is RequestKind.DOCUMENT:
            return False
        if context is None:
            logger.debug("No browsing context for request: %s", location)
            return False
        top_url = context.top.url
        if not top_url:
            logger.debug("Couldn't get the top document for request: %s", location)
            return False
        return is_third_party(location, top_url)

    # -- request verdict ------------------------------------------------------

    def evaluate(
        self,
        location: str,
        context: BrowsingContext | None,
        kind: RequestKind = RequestKind.OTHER,
    ) -> Decision:
        """Return the verdict for a request plus the decision event, if any.

        The caller forwards the event to the settings ledger.
        """
        if not self.is_blockable(location, context, kind):
            return Decision(Verdict.ALLOW)
        host = get_host(location)
        base = get_base_domain(location)
        if host is None or base is None:
            logger.debug("Couldn't get host of request: %s", location)
            return Decision(Verdict.ALLOW)

        # Read every list from one snapshot.
        snap = self.rules.snapshot()

        # userRed goes first: it has precedence over every ignore rule.
        if host in snap.user_red:
            return Decision(Verdict.BLOCK, self._event(Action.USERBLOCK, context, host))

        ignored = self._ignore_rule(snap, host, base, context)
        if ignored is not None:
            rule, event = ignored
            logger.debug("Ignoring %s (%s)", location, rule)
            return Decision(Verdict.ALLOW, event)

        if base in snap.blocked_origins:
            logger.debug("Heuristic blocks %s", location)
            return Decision(Verdict.BLOCK, self._event(Action.BLOCK, context, host))

        return Decision(Verdict.ALLOW)

    def _ignore_rule(
        self,
        snap: RuleSnapshot,
        host: str,
        base: str,
        context: BrowsingContext | None,
    ) -> tuple[str, DecisionEvent | None] | None:
        """Name of the ignore rule matching the request, with its event."""
        if host in snap.user_green:
            return "user_green", self._event(Action.USERNOACTION, context, host)
        if host in snap.user_yellow:
            return "user_yellow", self._event(Action.USERCOOKIEBLOCK, context, host)
        if base in snap.user_yellow:
            self._clobber(host)
            return "user_yellow", self._event(Action.USERCOOKIEBLOCK, context, host)
        if host in snap.preloads:
            return "preloads", None
        return None

    # -- cookie-blocking ------------------------------------------------------

    def should_cookieblock(
        self, location: str, context: BrowsingContext | None
    ) -> Decision:
        """Decide whether to strip credentials from a request that was not blocked.

        The first matching rule wins:

          1. host or base domain on the user's yellow list;
          2. host or base domain preloaded AND base domain flagged by the
             heuristic (a preloaded domain that turned into a tracker);
          3. base domain on the red list or flagged by the heuristic, which
             cookie-blocks subdomains of a blocked parent.

        Every match clears existing cookies for the host. Returns COOKIEBLOCK
        or ALLOW, with the event to record.
        """
        host = get_host(location)
        base = get_base_domain(location)
        if host is None or base is None:
            logger.debug("Couldn't get host of request: %s", location)
            return Decision(Verdict.ALLOW)

        snap = self.rules.snapshot()

        if host in snap.user_yellow or base in snap.user_yellow:
            if host not in snap.user_yellow:
                self._clobber(host)
            return Decision(
                Verdict.COOKIEBLOCK, self._event(Action.USERCOOKIEBLOCK, context, host)
            )

        pending: DecisionEvent | None = None
        if host in snap.preloads or base in snap.preloads:
            if base in snap.blocked_origins:
                self._clobber(host)
                return Decision(
                    Verdict.COOKIEBLOCK, self._event(Action.COOKIEBLOCK, context, host)
                )
            # Preloaded only: record it as allowed, later rules may still match.
            pending = self._event(Action.NOACTION, context, host)

        if base in snap.user_red or base in snap.blocked_origins:
            self._clobber(host)
            return Decision(
                Verdict.COOKIEBLOCK, self._event(Action.COOKIEBLOCK, context, host)
            )

        return Decision(Verdict.ALLOW, pending)

    # -- helpers --------------------------------------------------------------

    def _event(
        self, tag: Action, context: BrowsingContext | None, origin: str
    ) -> DecisionEvent | None:
        if context is None:
            return None
        return DecisionEvent(tag=tag, context_id=context.top.context_id, origin=origin)

    def _clobber(self, host: str) -> None:
        if self.stripper is None:
            return
        try:
            self.stripper.clobber(host)
        except Exception:
            # Cookie removal must never break request processing.
            logger.exception("Failed to clear cookies for %s", host)
