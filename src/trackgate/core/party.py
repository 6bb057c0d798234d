"""Party classification — hosts, base domains and third-party checks.

Base domains follow the public suffix list: for ``www.bbc.co.uk`` the base
domain is ``bbc.co.uk``. The bundled suffix snapshot shipped with tldextract
is used so that classification never touches the network.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from urllib.parse import urlsplit

import tldextract

logger = logging.getLogger(__name__)

# Internal and non-network schemes are never evaluated.
WHITELISTED_SCHEMES: frozenset[str] = frozenset(
    {
        "about",
        "chrome",
        "file",
        "irc",
        "moz-safe-about",
        "news",
        "resource",
        "snews",
        "x-jsd",
        "addbook",
        "cid",
        "imap",
        "mailbox",
        "nntp",
        "pop",
        "data",
        "javascript",
        "moz-icon",
    }
)

# Private suffixes count too: alice.github.io and bob.github.io are separate sites.
_extract = tldextract.TLDExtract(suffix_list_urls=(), include_psl_private_domains=True)


def get_scheme(url: str) -> str:
    """Return the lowercased scheme of *url*, or "" if it has none."""
    scheme, sep, _rest = url.partition(":")
    if not sep or not scheme or not scheme[0].isalpha():
        return ""
    return scheme.lower()


def get_host(url: str) -> str | None:
    """Extract the hostname from a URL. Returns None for malformed input."""
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host.rstrip(".").lower() or None


@lru_cache(maxsize=4096)
def _base_domain_for_host(host: str) -> str:
    ext = _extract(host)
    if ext.domain and ext.suffix:
        return f"{ext.domain}.{ext.suffix}"
    # IP addresses, localhost and bare suffixes have no registrable domain
    return host


def get_base_domain(url_or_host: str) -> str | None:
    """Return the registrable domain for a URL or a bare host.

    Returns None when no host can be extracted; callers treat that as
    "ignore this request".
    """
    if "://" in url_or_host:
        host = get_host(url_or_host)
    else:
        host = url_or_host.strip().rstrip(".").lower() or None
    if host is None:
        return None
    return _base_domain_for_host(host)


def is_whitelisted_scheme(url: str, extra: frozenset[str] | set[str] = frozenset()) -> bool:
    scheme = get_scheme(url)
    return scheme in WHITELISTED_SCHEMES or scheme in extra


def is_third_party(request_url: str, top_document_url: str) -> bool:
    """Compare the base domains of a request and its top-level document.

    Unparseable URLs are logged and reported as first-party so the request is
    left alone.
    """
    request_base = get_base_domain(request_url) if "://" in request_url else None
    top_base = get_base_domain(top_document_url) if "://" in top_document_url else None
    if request_base is None or top_base is None:
        logger.debug(
            "Couldn't get party of %r (top document %r)", request_url, top_document_url
        )
        return False
    return request_base != top_base
