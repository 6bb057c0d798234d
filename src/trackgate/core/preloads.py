"""Preload allowlist — bundled YAML list plus optional remote updates."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
import yaml

logger = logging.getLogger(__name__)

BUNDLED_PRELOADS = Path(__file__).resolve().parent.parent / "data" / "preloads.yaml"


def load_bundled_preloads(path: Path | None = None) -> set[str]:
    """Read the preload list shipped with the package."""
    with open(path or BUNDLED_PRELOADS) as f:
        data = yaml.safe_load(f) or {}
    return {str(host).strip().lower() for host in data.get("preloads", []) if host}


def parse_preloads(text: str) -> set[str]:
    """Parse a plain-text list: one host per line, ``#`` starts a comment."""
    hosts: set[str] = set()
    for line in text.splitlines():
        host = line.split("#", 1)[0].strip().rstrip(".").lower()
        if host and " " not in host and "/" not in host:
            hosts.add(host)
    return hosts


async def fetch_preloads(url: str, timeout: float = 15.0) -> set[str]:
    """Download an updated preload list."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
    hosts = parse_preloads(resp.text)
    logger.debug("Fetched %d preloads from %s", len(hosts), url)
    return hosts


def dump_preloads(hosts: set[str], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump({"version": 1, "preloads": sorted(hosts)}, f, sort_keys=False)
