"""Shared types: actions, verdicts, decision events and browsing contexts."""

from __future__ import annotations

from enum import StrEnum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict


class Action(StrEnum):
    """Decision applied to an origin, as recorded in the settings ledger."""

    NOACTION = "noaction"
    BLOCK = "block"
    COOKIEBLOCK = "cookieblock"
    USERNOACTION = "usernoaction"
    USERBLOCK = "userblock"
    USERCOOKIEBLOCK = "usercookieblock"

    @property
    def is_user_set(self) -> bool:
        return self.value.startswith("user")

    @property
    def base(self) -> Action:
        """The action without its user prefix (userblock -> block)."""
        if self.is_user_set:
            return Action(self.value[4:])
        return self

    @property
    def priority(self) -> int:
        return ACTION_PRIORITY[self]


# Higher wins. User decisions outrank heuristics; block outranks cookieblock.
ACTION_PRIORITY: dict[Action, int] = {
    Action.USERBLOCK: 6,
    Action.USERCOOKIEBLOCK: 5,
    Action.USERNOACTION: 4,
    Action.BLOCK: 3,
    Action.COOKIEBLOCK: 2,
    Action.NOACTION: 1,
}


class EditAction(StrEnum):
    """A pending user edit, applied to the user rule lists on commit."""

    BLOCK = "block"
    COOKIEBLOCK = "cookieblock"
    NOACTION = "noaction"
    RESET = "reset"


class Verdict(StrEnum):
    ALLOW = "allow"
    BLOCK = "block"
    COOKIEBLOCK = "cookieblock"

    @property
    def permits(self) -> bool:
        return self is not Verdict.BLOCK

    @property
    def strips_credentials(self) -> bool:
        return self is Verdict.COOKIEBLOCK


class RequestKind(StrEnum):
    DOCUMENT = "document"
    SUBDOCUMENT = "subdocument"
    SCRIPT = "script"
    IMAGE = "image"
    STYLESHEET = "stylesheet"
    XHR = "xhr"
    OTHER = "other"


class BrowsingContext(BaseModel):
    """A frame or tab. Nested frames point at their parent."""

    model_config = ConfigDict(frozen=True)

    context_id: str
    url: str = ""
    parent: BrowsingContext | None = None

    @property
    def top(self) -> BrowsingContext:
        ctx = self
        while ctx.parent is not None:
            ctx = ctx.parent
        return ctx


BrowsingContext.model_rebuild()


class DecisionEvent(BaseModel):
    """Which action was applied to which origin inside a top-level context."""

    model_config = ConfigDict(frozen=True)

    tag: Action
    context_id: str
    origin: str


class Decision(NamedTuple):
    verdict: Verdict
    event: DecisionEvent | None = None
