"""
Event validation for analytics events.

Checks the structural invariants every downstream consumer relies on:
- ``type`` is one of the six tracking types
- ``message_id`` is a non-empty string
- track events carry a non-empty ``event`` name
- alias events carry both ``user_id`` and ``previous_id``
- identify/group events keep traits at the root, never in ``context.traits``
- all other events never carry root ``traits``

Usage:
    from analytics_events.validation import EventValidator, ValidationError

    validator = EventValidator()
    result = validator.validate_event(event)
    if not result.ok:
        print(result.errors)

    # Raise instead of returning a failed result
    validator = EventValidator(strict=True)
    validator.validate_event(event)  # Raises ValidationError
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .events import EVENT_TYPES, IDENTITY_EVENT_TYPES

if TYPE_CHECKING:
    from .events import AnalyticsEvent


class ValidationError(Exception):
    """Raised when an event or a tracking call violates the event contract."""

    def __init__(self, message: str, event_type: str | None = None):
        self.event_type = event_type
        super().__init__(message)


@dataclass
class ValidationResult:
    """Result of event validation."""

    valid: bool
    errors: list[str]
    warnings: list[str]

    @property
    def ok(self) -> bool:
        return self.valid and len(self.errors) == 0


class EventValidator:
    """
    Validates analytics events against the structural invariants of each event type.

    Usage:
        validator = EventValidator()
        validator.validate_event_type("track")    # OK
        validator.validate_event_type("pageview") # errors: unknown type

        strict = EventValidator(strict=True)
        strict.validate_event(event)  # Raises ValidationError on failure
    """

    def __init__(self, strict: bool = False):
        """
        Initialize the validator.

        Args:
            strict: If True, raise errors; if False, return validation result
        """
        self.strict = strict

    def validate_event_type(self, event_type: str) -> ValidationResult:
        """
        Validate an event type string.

        Raises:
            ValidationError: If strict mode and validation fails
        """
        errors: list[str] = []
        if event_type not in EVENT_TYPES:
            errors.append(
                f"Event type {event_type!r} must be one of: {', '.join(EVENT_TYPES)}"
            )
        return self._result(errors, [], event_type)

    def validate_message_id(self, message_id: str | None) -> ValidationResult:
        """Validate that a message id is a non-empty string."""
        errors: list[str] = []
        if not isinstance(message_id, str) or not message_id.strip():
            errors.append("messageId must be a non-empty string")
        return self._result(errors, [])

    def validate_event(self, event: AnalyticsEvent) -> ValidationResult:
        """
        Validate all invariants of an event.

        Args:
            event: Event to validate

        Returns:
            Combined ValidationResult

        Raises:
            ValidationError: If strict mode and any check fails
        """
        errors: list[str] = []
        warnings: list[str] = []

        if event.type not in EVENT_TYPES:
            errors.append(
                f"Event type {event.type!r} must be one of: {', '.join(EVENT_TYPES)}"
            )
        if not isinstance(event.message_id, str) or not event.message_id.strip():
            errors.append("messageId must be a non-empty string")
        if not isinstance(event.context, Mapping):
            errors.append(f"context must be an object, got {type(event.context).__name__}")

        if event.type == "track" and (not isinstance(event.event, str) or not event.event):
            errors.append("track events require a non-empty event name")

        if event.type == "alias":
            if not event.user_id:
                errors.append("alias events require userId")
            if not event.previous_id:
                errors.append("alias events require previousId")
            if event.user_id and event.user_id == event.previous_id:
                warnings.append(f"alias from {event.previous_id!r} to itself")

        if event.type in IDENTITY_EVENT_TYPES:
            if isinstance(event.context, Mapping) and "traits" in event.context:
                errors.append(f"{event.type} events must keep traits out of context")
        elif event.traits is not None:
            errors.append(f"{event.type} events must carry traits in context.traits")

        return self._result(errors, warnings, event.type)

    def _result(
        self,
        errors: list[str],
        warnings: list[str],
        event_type: str | None = None,
    ) -> ValidationResult:
        """Create result, optionally raising in strict mode."""
        valid = len(errors) == 0

        if self.strict and not valid:
            raise ValidationError("; ".join(errors), event_type)

        return ValidationResult(valid=valid, errors=errors, warnings=warnings)


def is_valid_event_type(event_type: str) -> bool:
    """Quick check if event type is one of the tracking types."""
    return event_type in EVENT_TYPES
