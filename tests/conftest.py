"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from trackgate.core.base import BrowsingContext
from trackgate.core.ledger import SettingsLedger
from trackgate.core.policy import PolicyEngine
from trackgate.core.rules import RuleLists


@pytest.fixture
def stripper() -> MagicMock:
    return MagicMock()


@pytest.fixture
def site() -> BrowsingContext:
    """Top-level context showing https://site.com/."""
    return BrowsingContext(context_id="tab-1", url="https://site.com/")


@pytest.fixture
def frame(site: BrowsingContext) -> BrowsingContext:
    """A third-party iframe nested in the site.com tab."""
    return BrowsingContext(context_id="frame-1", url="https://widgets.example.org/embed", parent=site)


@pytest.fixture
def rules() -> RuleLists:
    return RuleLists()


@pytest.fixture
def engine(rules: RuleLists, stripper: MagicMock) -> PolicyEngine:
    return PolicyEngine(rules, stripper=stripper)


@pytest.fixture
def ledger(rules: RuleLists) -> SettingsLedger:
    return SettingsLedger(rules)
