"""
Event Serializer - turns tracking calls into canonical events.

The tracking methods accept overloaded call shapes inherited from the
Segment analytics.js API, where the position and kind of an argument encode
intent:

    page("Docs", "Install", {"version": 2})   # category, name, properties
    page({"version": 2})                      # properties only
    identify("user-1", {"plan": "pro"})       # user id + traits
    identify({"plan": "pro"})                 # traits only
    alias("new-id", "old-id")
    alias({"userId": "new-id", "previousId": "old-id"})

Every argument is classified once at the boundary into an ArgKind (absent,
string or object) and the rest of the code works with the classification.

Each event is assembled from, in increasing precedence:
    1. the default template (random message id, sentAt, empty context)
    2. the registered template factory for the event type/name
    3. the call-level ``context`` override
    4. the type-specific fields of the call

Usage:
    from analytics_events import EventSerializer

    serializer = EventSerializer(
        template=lambda event_type, name: {"write_key": "wk_123"},
    )
    event = serializer.track("Sign Up", {"plan": "pro"})
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from .context import infer_context_fields
from .events import (
    IDENTITY_EVENT_TYPES,
    AnalyticsEvent,
    generate_message_id,
    utc_now_iso,
)
from .validation import EventValidator, ValidationError

logger = logging.getLogger(__name__)

# Template factory: (event_type, name) -> partial template
TemplateFactory = Callable[[str, str | None], Mapping[str, Any]]

TEMPLATE_FIELDS = frozenset(
    {
        "message_id",
        "sent_at",
        "context",
        "user_id",
        "anonymous_id",
        "previous_id",
        "group_id",
        "write_key",
    }
)


class ArgKind(Enum):
    """Structural kind of a tracking call argument."""

    ABSENT = "absent"
    STRING = "string"
    OBJECT = "object"


def classify_argument(value: Any, position: str = "argument") -> ArgKind:
    """
    Classify a tracking call argument.

    Args:
        value: The argument as passed by the caller
        position: Argument name used in error messages

    Returns:
        ArgKind of the value

    Raises:
        ValidationError: If the value is neither None, a string nor a mapping
    """
    if value is None:
        return ArgKind.ABSENT
    if isinstance(value, str):
        return ArgKind.STRING
    if isinstance(value, Mapping):
        return ArgKind.OBJECT
    raise ValidationError(
        f"{position} must be a string, an object or None, got {type(value).__name__}"
    )


def default_template(event_type: str, name: str | None = None) -> dict[str, Any]:
    """Lowest-precedence template: fresh message id, sentAt and empty context."""
    return {
        "context": {},
        "message_id": generate_message_id(),
        "sent_at": utc_now_iso(),
    }


def _copy_object(value: Mapping[str, Any]) -> dict[str, Any]:
    return copy.deepcopy(dict(value))


def _optional_string(value: Any, position: str) -> str | None:
    if classify_argument(value, position) is ArgKind.OBJECT:
        raise ValidationError(f"{position} must be a string or None")
    return value


class EventSerializer:
    """
    Stateless factory of analytics events.

    One method per event type. The serializer performs no I/O and holds no
    state besides its configuration; calling the same method twice yields two
    independent events.

    Usage:
        serializer = EventSerializer()
        serializer.page("Docs", "Install")
        serializer.identify("user-1", {"email": "a@example.com"})
    """

    def __init__(
        self,
        template: TemplateFactory | None = None,
        validator: EventValidator | None = None,
        infer_context: bool = True,
    ):
        """
        Initialize the serializer.

        Args:
            template: Optional factory returning template fields for an
                (event_type, name) pair; overrides the default template
            validator: Validator applied to every built event
                (default: strict EventValidator); an invalid result always
                raises ValidationError, whatever the validator mode
            infer_context: If True, run context inference on every event
        """
        self.template = template
        self.infer_context = infer_context
        self._validator = validator or EventValidator(strict=True)

    def track(
        self,
        event_name: str,
        properties: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> AnalyticsEvent:
        """
        Build a track event.

        Args:
            event_name: Name of the action, e.g. "Sign Up"
            properties: Event properties
            context: Context fields overriding the template context

        Raises:
            ValidationError: If event_name is missing or empty
        """
        if classify_argument(event_name, "event_name") is not ArgKind.STRING or not event_name:
            raise ValidationError("track requires a non-empty event name", "track")
        kind = classify_argument(properties, "properties")
        if kind is ArgKind.STRING:
            raise ValidationError("track properties must be an object", "track")

        return self._build(
            "track",
            event_name,
            context,
            event=event_name,
            properties=_copy_object(properties) if kind is ArgKind.OBJECT else {},
        )

    def page(
        self,
        category: str | Mapping[str, Any] | None = None,
        name: str | Mapping[str, Any] | None = None,
        properties: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> AnalyticsEvent:
        """
        Build a page event.

        Any of the positional arguments may be an object, in which case it is
        taken as the properties payload. Precedence: ``properties``, then
        ``name``, then ``category``.
        """
        return self._view("page", category, name, properties, context)

    def screen(
        self,
        category: str | Mapping[str, Any] | None = None,
        name: str | Mapping[str, Any] | None = None,
        properties: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> AnalyticsEvent:
        """Build a screen event. Same call shapes as page()."""
        return self._view("screen", category, name, properties, context)

    def identify(
        self,
        id_or_traits: str | Mapping[str, Any] | None = None,
        traits: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> AnalyticsEvent:
        """
        Build an identify event.

        A string first argument is the user id. An object first argument is
        taken as the traits and the second argument is ignored. When no user
        id is given but the ``traits`` argument carries a string ``userId``,
        that value becomes the event user id.
        """
        user_id, payload, from_traits_arg = self._identity_args(id_or_traits, traits)
        if user_id is None and from_traits_arg:
            candidate = payload.get("userId")
            if isinstance(candidate, str) and candidate:
                user_id = candidate

        return self._build("identify", None, context, user_id=user_id, traits=payload)

    def group(
        self,
        id_or_traits: str | Mapping[str, Any] | None = None,
        traits: Mapping[str, Any] | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> AnalyticsEvent:
        """
        Build a group event.

        Same call shapes as identify(), producing ``group_id`` and ``traits``.
        """
        group_id, payload, _ = self._identity_args(id_or_traits, traits)
        return self._build("group", None, context, group_id=group_id, traits=payload)

    def alias(
        self,
        user_id_or_object: str | Mapping[str, Any] | None,
        previous_id: str | None = None,
        *,
        context: Mapping[str, Any] | None = None,
    ) -> AnalyticsEvent:
        """
        Build an alias event.

        Accepts either ``alias(user_id, previous_id)`` or
        ``alias({"userId": ..., "previousId": ...})``.

        Raises:
            ValidationError: If either id is missing
        """
        if classify_argument(user_id_or_object, "user_id_or_object") is ArgKind.OBJECT:
            user_id = _optional_string(user_id_or_object.get("userId"), "userId")
            previous = _optional_string(user_id_or_object.get("previousId"), "previousId")
        else:
            user_id = user_id_or_object
            previous = _optional_string(previous_id, "previous_id")

        return self._build("alias", None, context, user_id=user_id, previous_id=previous)

    def reset(self) -> None:
        """No-op: the serializer holds no identity state."""

    def _view(
        self,
        event_type: str,
        category: Any,
        name: Any,
        properties: Any,
        context: Mapping[str, Any] | None,
    ) -> AnalyticsEvent:
        """Shared page/screen construction."""
        category_kind = classify_argument(category, "category")
        name_kind = classify_argument(name, "name")
        properties_kind = classify_argument(properties, "properties")

        payload: dict[str, Any] = {}
        for value, kind in (
            (properties, properties_kind),
            (name, name_kind),
            (category, category_kind),
        ):
            if kind is ArgKind.OBJECT:
                payload = _copy_object(value)
                break

        page_name = name if name_kind is ArgKind.STRING else None
        return self._build(
            event_type,
            page_name,
            context,
            category=category if category_kind is ArgKind.STRING else None,
            name=page_name,
            properties=payload,
        )

    def _identity_args(
        self,
        id_or_traits: Any,
        traits: Any,
    ) -> tuple[str | None, dict[str, Any], bool]:
        """
        Resolve (id, traits) for identify/group.

        Returns:
            Tuple of (id, traits, whether traits came from the second argument)
        """
        if classify_argument(id_or_traits, "id_or_traits") is ArgKind.OBJECT:
            return None, _copy_object(id_or_traits), False

        traits_kind = classify_argument(traits, "traits")
        if traits_kind is ArgKind.STRING:
            raise ValidationError("traits must be an object")
        if traits_kind is ArgKind.OBJECT:
            return id_or_traits, _copy_object(traits), True
        return id_or_traits, {}, False

    def _template_fields(self, event_type: str, name: str | None) -> dict[str, Any]:
        """Merge the default template with the registered template factory."""
        fields = default_template(event_type, name)
        if self.template is None:
            return fields

        custom = self.template(event_type, name) or {}
        unknown = set(custom) - TEMPLATE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown template fields: {sorted(unknown)}", event_type
            )
        fields.update({key: value for key, value in custom.items() if value is not None})
        return fields

    def _build(
        self,
        event_type: str,
        name: str | None,
        context_override: Mapping[str, Any] | None,
        /,
        **fields: Any,
    ) -> AnalyticsEvent:
        """Assemble, enrich and validate an event."""
        template = self._template_fields(event_type, name)

        template_context = template.pop("context")
        if not isinstance(template_context, Mapping):
            raise ValidationError("template context must be an object", event_type)
        context = _copy_object(template_context)
        if classify_argument(context_override, "context") is ArgKind.OBJECT:
            context.update(_copy_object(context_override))
        elif context_override is not None:
            raise ValidationError("context must be an object", event_type)

        if event_type in IDENTITY_EVENT_TYPES:
            context.pop("traits", None)
        if self.infer_context:
            context = infer_context_fields(context)

        values = {**template, **{key: value for key, value in fields.items() if value is not None}}
        event = AnalyticsEvent(type=event_type, context=context, **values)

        result = self._validator.validate_event(event)
        for warning in result.warnings:
            logger.debug(f"Event {event.message_id}: {warning}")
        if not result.ok:
            raise ValidationError("; ".join(result.errors), event_type)

        logger.debug(f"Built {event_type} event {event.message_id}")
        return event
