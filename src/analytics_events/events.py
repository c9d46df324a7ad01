"""
Event data models for analytics tracking.

This module defines AnalyticsEvent - an immutable record of one tracking call
(track, page, identify, group, alias or screen). Attribute names are Pythonic;
the wire format produced by to_dict() uses the camelCase field names of the
Segment tracking API so events can be posted to any compatible collector.

Event Types:
    - track:    a named user action, carries ``event`` and ``properties``
    - page:     a web page view, carries ``category``/``name``/``properties``
    - screen:   a mobile screen view, same shape as page
    - identify: ties a user id to ``traits``
    - group:    ties a group id to ``traits``
    - alias:    merges ``previous_id`` into ``user_id``

Traits live at the root only for identify and group events. Every other event
type keeps them under ``context.traits``.
"""

from __future__ import annotations

import copy
import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal["track", "page", "identify", "group", "alias", "screen"]

EVENT_TYPES: tuple[str, ...] = ("track", "page", "identify", "group", "alias", "screen")

# Event types whose traits belong at the event root
IDENTITY_EVENT_TYPES = frozenset({"identify", "group"})

# Attribute name -> wire name, in wire output order
WIRE_FIELDS: dict[str, str] = {
    "message_id": "messageId",
    "type": "type",
    "timestamp": "timestamp",
    "sent_at": "sentAt",
    "event": "event",
    "category": "category",
    "name": "name",
    "user_id": "userId",
    "anonymous_id": "anonymousId",
    "group_id": "groupId",
    "previous_id": "previousId",
    "write_key": "writeKey",
    "properties": "properties",
    "traits": "traits",
    "context": "context",
}


def generate_message_id() -> str:
    """
    Generate a random message ID.

    The ID is 128 random bits rendered as hex. Collisions are extremely
    unlikely but not impossible; callers needing a hard guarantee should
    provide message ids through a template.
    """
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AnalyticsEvent:
    """
    Immutable analytics event record.

    Events are never mutated after construction. Enrichment steps such as
    identity back-fill produce a new event through with_identity().

    Attributes:
        type: One of EVENT_TYPES
        message_id: Unique (with high probability) identifier of this event
        context: Environment of the event (page, campaign, locale, ip, ...)
        timestamp: ISO-8601 time the event happened, if known
        sent_at: ISO-8601 time the event was constructed for sending
        properties: Event-scoped payload (track/page/screen)
        traits: Identity-scoped payload (identify/group)
        user_id: Known user id
        anonymous_id: Anonymous visitor id
        group_id: Group (account, organization) id
        previous_id: Former user id, alias events only
        category: Page/screen category
        name: Page/screen name
        event: Track event name
        write_key: Source write key, usually set by a template
    """

    type: str
    message_id: str = field(default_factory=generate_message_id)
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: str | None = None
    sent_at: str | None = None
    properties: dict[str, Any] | None = None
    traits: dict[str, Any] | None = None
    user_id: str | None = None
    anonymous_id: str | None = None
    group_id: str | None = None
    previous_id: str | None = None
    category: str | None = None
    name: str | None = None
    event: str | None = None
    write_key: str | None = None

    def with_identity(
        self,
        user_id: str | None = None,
        group_id: str | None = None,
    ) -> AnalyticsEvent:
        """
        Return a copy of this event carrying the given identity fields.

        Args:
            user_id: User id for the new event
            group_id: Group id for the new event

        Returns:
            New AnalyticsEvent; this event is left untouched
        """
        return replace(
            self,
            user_id=user_id,
            group_id=group_id,
            context=copy.deepcopy(self.context),
            properties=copy.deepcopy(self.properties),
            traits=copy.deepcopy(self.traits),
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert event to its wire representation.

        Returns:
            Dictionary with camelCase keys; unset (None) fields are omitted
        """
        data: dict[str, Any] = {}
        for attr, wire_name in WIRE_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                data[wire_name] = copy.deepcopy(value)
        return data

    def to_json(self, indent: int | None = None) -> str:
        """
        Serialize event to JSON.

        Args:
            indent: Pretty-print indentation; compact single line when None

        Returns:
            JSON string of to_dict()
        """
        if indent is None:
            return json.dumps(self.to_dict(), separators=(",", ":"))
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyticsEvent:
        """
        Rebuild an event from its wire representation.

        Unknown keys (for example server-side fields such as receivedAt) are
        ignored.

        Raises:
            KeyError: If ``type`` is missing
        """
        kwargs = {
            attr: copy.deepcopy(data[wire_name])
            for attr, wire_name in WIRE_FIELDS.items()
            if wire_name in data
        }
        if "type" not in kwargs:
            raise KeyError("type")
        if kwargs.get("context") is None:
            kwargs["context"] = {}
        return cls(**kwargs)
