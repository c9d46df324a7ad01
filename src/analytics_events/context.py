"""
Context inference for analytics events.

Several context fields can be derived from others: ``page.host``,
``page.path`` and ``page.search`` from ``page.url``, campaign attribution from
``utm_*`` query parameters, and ``page.referring_domain`` from
``page.referrer``. This module fills those fields in when the caller did not.

Usage:
    from analytics_events.context import infer_context_fields

    ctx = infer_context_fields(
        {"page": {"url": "https://example.com/pricing?utm_source=ads"}}
    )
    ctx["page"]["path"]        # "/pricing"
    ctx["campaign"]["source"]  # "ads"

Explicit values always win over inferred ones, malformed URLs never raise,
and applying the inference twice gives the same result as applying it once.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, urlsplit

logger = logging.getLogger(__name__)

CAMPAIGN_PREFIX = "utm_"

# Ports omitted from ``host`` when they match the scheme default
DEFAULT_PORTS: dict[str, int] = {
    "http": 80,
    "https": 443,
    "ws": 80,
    "wss": 443,
    "ftp": 21,
}


def parse_url(url: Any) -> dict[str, str]:
    """
    Split an absolute URL into page fields.

    Args:
        url: URL string (anything else yields no fields)

    Returns:
        Dict with ``host``, ``path``, ``search`` and ``hash``, or an empty
        dict when the URL cannot be parsed
    """
    if not url or not isinstance(url, str):
        return {}

    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError as e:
        logger.debug(f"Cannot parse URL {url!r}: {e}")
        return {}

    if not parts.scheme or not parts.netloc or not parts.hostname:
        logger.debug(f"Not an absolute URL: {url!r}")
        return {}

    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    if port is not None and DEFAULT_PORTS.get(parts.scheme.lower()) != port:
        host = f"{host}:{port}"

    return {
        "host": host,
        "path": parts.path or "/",
        "search": f"?{parts.query}" if parts.query else "",
        "hash": f"#{parts.fragment}" if parts.fragment else "",
    }


def parse_campaign(search: Any) -> dict[str, str]:
    """
    Extract campaign fields from a query string.

    ``utm_source=google`` becomes ``{"source": "google"}``. Values are
    percent-decoded; when a parameter repeats, the last value wins.

    Args:
        search: Query string, with or without the leading ``?``

    Returns:
        Campaign mapping, empty when there are no utm parameters
    """
    if not search or not isinstance(search, str):
        return {}

    query = search[1:] if search.startswith("?") else search
    return {
        key[len(CAMPAIGN_PREFIX) :]: value
        for key, value in parse_qsl(query, keep_blank_values=True)
        if key.startswith(CAMPAIGN_PREFIX)
    }


def parse_referring_domain(referrer: Any) -> str | None:
    """Host of the referrer URL, or None if it cannot be parsed."""
    return parse_url(referrer).get("host")


def infer_context_fields(context: Mapping[str, Any]) -> dict[str, Any]:
    """
    Fill in context fields that can be inferred from ``page.url`` and
    ``page.referrer``.

    Only missing fields are filled; the input mapping is not modified.

    Args:
        context: Analytics context

    Returns:
        New context dict with inferred fields added
    """
    ctx = copy.deepcopy(dict(context))
    page = ctx.get("page")
    if not isinstance(page, Mapping):
        return ctx

    page = dict(page)
    parsed = parse_url(page.get("url"))
    for key in ("host", "path", "search"):
        value = parsed.get(key)
        if page.get(key) is None and value is not None:
            page[key] = value

    existing_campaign = ctx.get("campaign")
    if existing_campaign is None or isinstance(existing_campaign, Mapping):
        campaign = {**parse_campaign(page.get("search")), **(existing_campaign or {})}
        if campaign:
            ctx["campaign"] = campaign
        else:
            ctx.pop("campaign", None)

    if not page.get("referring_domain"):
        referring_domain = parse_referring_domain(page.get("referrer"))
        if referring_domain:
            page["referring_domain"] = referring_domain

    ctx["page"] = page
    return ctx
