"""
Redaction of personal data in printed analytics events.

Only the parts of an event that carry caller-supplied data are touched:
``traits`` (identify/group), ``properties`` (track/page/screen) and
``context.traits`` (every other event). Inside those payloads, personal
traits such as ``email`` or ``firstName`` are blanked and free-text values
are scanned for emails, phone numbers and card numbers. Outside them, the
visitor IP in ``context.ip`` is blanked and the ``writeKey`` is masked down to
its last four characters. Ids, names and the rest of the context are printed
as is so the output stays useful for debugging.

Usage:
    from analytics_events.redaction import Redactor

    redactor = Redactor()
    safe = redactor.redact_event(event)  # wire-format dict
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .events import AnalyticsEvent

REDACTED = "[REDACTED]"

# Wire paths of caller-supplied payloads
PAYLOAD_PATHS: tuple[tuple[str, ...], ...] = (
    ("traits",),
    ("properties",),
    ("context", "traits"),
)

# Reserved and common traits holding personal data, normalized (see _trait_key)
PERSONAL_TRAITS: frozenset[str] = frozenset(
    {
        "email",
        "phone",
        "phonenumber",
        "mobile",
        "address",
        "street",
        "birthday",
        "dateofbirth",
        "dob",
        "firstname",
        "lastname",
        "ssn",
        "password",
        "creditcard",
        "cardnumber",
        "cvv",
    }
)

# Patterns for personal data inside free-text values, by label
TEXT_PATTERNS: dict[str, str] = {
    "email": r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
    "card": r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b",
    "phone": r"(?:\+\d{10,15}\b|\(?\b\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b)",
}


def _trait_key(key: str) -> str:
    """Normalize a trait name so ``firstName``, ``first_name`` and ``FirstName`` match."""
    return key.replace("_", "").replace("-", "").lower()


def mask_write_key(write_key: str) -> str:
    """Keep the last four characters of a write key."""
    if len(write_key) <= 4:
        return REDACTED
    return f"{'*' * 8}{write_key[-4:]}"


class Redactor:
    """
    Personal-data redaction for analytics events.

    Usage:
        redactor = Redactor()
        redactor.redact_payload({"email": "a@example.com", "plan": "pro"})
        # {"email": "[REDACTED]", "plan": "pro"}

        # Also blank a custom trait and skip text scanning
        Redactor(personal_traits={"loyaltyNumber"}, patterns={})
    """

    def __init__(
        self,
        enabled: bool = True,
        personal_traits: Iterable[str] | None = None,
        patterns: Mapping[str, str] | None = None,
    ):
        """
        Initialize the redactor.

        Args:
            enabled: Whether redaction is active
            personal_traits: Extra trait names to blank, added to PERSONAL_TRAITS
            patterns: Label -> regex for free-text values (default TEXT_PATTERNS);
                matches become ``[REDACTED_<LABEL>]``
        """
        self.enabled = enabled
        self.personal_traits = PERSONAL_TRAITS | {
            _trait_key(name) for name in (personal_traits or ())
        }
        self.patterns = dict(TEXT_PATTERNS if patterns is None else patterns)
        self._compiled = [
            (re.compile(pattern, re.IGNORECASE), f"[REDACTED_{label.upper()}]")
            for label, pattern in self.patterns.items()
        ]

    def redact_event(self, event: AnalyticsEvent) -> dict[str, Any]:
        """
        Wire representation of an event with personal data removed.

        The event itself is left untouched.
        """
        data = event.to_dict()
        if not self.enabled:
            return data

        for path in PAYLOAD_PATHS:
            parent = data
            for key in path[:-1]:
                parent = parent.get(key)
                if not isinstance(parent, dict):
                    break
            else:
                payload = parent.get(path[-1])
                if isinstance(payload, Mapping):
                    parent[path[-1]] = self.redact_payload(payload)

        context = data.get("context")
        if isinstance(context, dict) and context.get("ip"):
            context["ip"] = REDACTED
        if isinstance(data.get("writeKey"), str):
            data["writeKey"] = mask_write_key(data["writeKey"])
        return data

    def redact_payload(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """
        Redact a traits or properties object.

        Personal traits are blanked at any depth, other strings are scanned.
        Returns a new dict; the input is not modified.
        """
        if not self.enabled:
            return copy.deepcopy(dict(payload))
        return self._redact_value(payload)

    def redact_text(self, value: str) -> str:
        """Replace emails, phone numbers and card numbers in a string."""
        if not self.enabled:
            return value
        for pattern, replacement in self._compiled:
            value = pattern.sub(replacement, value)
        return value

    def _redact_value(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                key: REDACTED
                if isinstance(key, str) and _trait_key(key) in self.personal_traits
                else self._redact_value(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self._redact_value(item) for item in value]
        if isinstance(value, str):
            return self.redact_text(value)
        return copy.deepcopy(value)
