"""
Tests for EventSerializer: call-shape resolution, templates and context.
"""

from __future__ import annotations

import pytest

from analytics_events import (
    ArgKind,
    EventSerializer,
    EventValidator,
    ValidationError,
    classify_argument,
)


class TestClassifyArgument:
    """Test the argument classification step."""

    def test_kinds(self):
        assert classify_argument(None) is ArgKind.ABSENT
        assert classify_argument("home") is ArgKind.STRING
        assert classify_argument("") is ArgKind.STRING
        assert classify_argument({"a": 1}) is ArgKind.OBJECT

    @pytest.mark.parametrize("value", [1, 2.5, True, ["a"], ("a",)])
    def test_other_values_rejected(self, value):
        with pytest.raises(ValidationError):
            classify_argument(value, "name")


class TestTrack:
    """Test track()."""

    def test_basic_track(self, serializer):
        """track('Sign Up') builds a complete track event."""
        event = serializer.track("Sign Up")

        assert event.type == "track"
        assert event.event == "Sign Up"
        assert event.properties == {}
        assert event.message_id
        assert event.sent_at.endswith("Z")
        assert event.traits is None
        assert event.user_id is None

    def test_track_properties_are_copied(self, serializer):
        """Later changes to the caller's dict do not leak into the event."""
        props = {"plan": "pro", "seats": {"count": 3}}
        event = serializer.track("Upgrade", props)
        props["seats"]["count"] = 99

        assert event.properties == {"plan": "pro", "seats": {"count": 3}}

    @pytest.mark.parametrize("name", ["", None, {"event": "Sign Up"}])
    def test_track_requires_name(self, serializer, name):
        """Missing or empty event names fail fast."""
        with pytest.raises(ValidationError):
            serializer.track(name)

    def test_track_rejects_string_properties(self, serializer):
        with pytest.raises(ValidationError):
            serializer.track("Sign Up", "plan=pro")

    def test_message_ids_differ(self, serializer):
        """Every event gets its own message id."""
        assert serializer.track("A").message_id != serializer.track("A").message_id


class TestPageAndScreen:
    """Test page()/screen() argument disambiguation."""

    @pytest.mark.parametrize("method", ["page", "screen"])
    def test_all_positions(self, serializer, method):
        event = getattr(serializer, method)("Docs", "Install", {"version": 2})

        assert event.type == method
        assert event.category == "Docs"
        assert event.name == "Install"
        assert event.properties == {"version": 2}

    @pytest.mark.parametrize("method", ["page", "screen"])
    @pytest.mark.parametrize("position", [0, 1, 2])
    def test_single_object_becomes_properties(self, serializer, method, position):
        """An object in any position is the properties payload."""
        args: list = ["Docs", "Install", None]
        args[position] = {"env": "prod"}

        event = getattr(serializer, method)(*args)

        assert event.properties == {"env": "prod"}
        assert event.category == (None if position == 0 else "Docs")
        assert event.name == (None if position == 1 else "Install")

    def test_properties_argument_wins(self, serializer):
        """Resolution order: properties, then name, then category."""
        assert serializer.page({"c": 1}, {"n": 1}, {"p": 1}).properties == {"p": 1}
        assert serializer.page({"c": 1}, {"n": 1}).properties == {"n": 1}
        assert serializer.page({"c": 1}, "Install").properties == {"c": 1}

    def test_no_arguments(self, serializer):
        event = serializer.page()

        assert event.category is None
        assert event.name is None
        assert event.properties == {}

    def test_object_only_call(self, serializer):
        event = serializer.page({"env": "prod"})

        assert event.category is None
        assert event.name is None
        assert event.properties == {"env": "prod"}

    def test_string_in_properties_position_is_ignored(self, serializer):
        event = serializer.page("Docs", "Install", "ignored")

        assert event.properties == {}

    def test_unsupported_argument_kind(self, serializer):
        with pytest.raises(ValidationError):
            serializer.page(123)


class TestIdentifyAndGroup:
    """Test identify()/group() argument disambiguation."""

    def test_identify_with_id_and_traits(self, serializer):
        event = serializer.identify("u1", {"email": "john@example.com"})

        assert event.type == "identify"
        assert event.user_id == "u1"
        assert event.traits == {"email": "john@example.com"}
        assert event.properties is None

    def test_identify_object_first_argument(self, serializer):
        """Object first argument is the traits; the second is ignored."""
        event = serializer.identify({"name": "John Doe"}, {"ignored": True})

        assert event.traits == {"name": "John Doe"}
        assert event.user_id is None

    def test_identify_defaults(self, serializer):
        event = serializer.identify()

        assert event.traits == {}
        assert event.user_id is None

    def test_identify_promotes_user_id_from_traits(self, serializer):
        """A userId inside the traits argument becomes the event user id."""
        event = serializer.identify(None, {"userId": "u9", "plan": "pro"})

        assert event.user_id == "u9"
        assert event.traits == {"userId": "u9", "plan": "pro"}

    def test_identify_explicit_id_beats_traits_user_id(self, serializer):
        assert serializer.identify("u1", {"userId": "u9"}).user_id == "u1"

    def test_identify_object_first_argument_is_not_promoted(self, serializer):
        assert serializer.identify({"userId": "u9"}).user_id is None

    def test_group_with_id_and_traits(self, serializer):
        event = serializer.group("g1", {"name": "Acme"})

        assert event.type == "group"
        assert event.group_id == "g1"
        assert event.traits == {"name": "Acme"}

    def test_group_object_first_argument(self, serializer):
        event = serializer.group({"name": "Acme"}, {"ignored": True})

        assert event.traits == {"name": "Acme"}
        assert event.group_id is None

    def test_group_does_not_promote_user_id(self, serializer):
        event = serializer.group(None, {"userId": "u9"})

        assert event.user_id is None
        assert event.group_id is None

    def test_traits_are_copied(self, serializer):
        traits = {"plan": "pro"}
        event = serializer.identify("u1", traits)
        traits["plan"] = "free"

        assert event.traits == {"plan": "pro"}

    def test_string_traits_rejected(self, serializer):
        with pytest.raises(ValidationError):
            serializer.identify("u1", "plan=pro")


class TestAlias:
    """Test alias()."""

    def test_string_and_object_forms_agree(self, serializer):
        positional = serializer.alias("b", "a")
        keyed = serializer.alias({"userId": "b", "previousId": "a"})

        assert (positional.user_id, positional.previous_id) == ("b", "a")
        assert (keyed.user_id, keyed.previous_id) == ("b", "a")
        assert positional.type == keyed.type == "alias"

    @pytest.mark.parametrize(
        "args",
        [("b",), ({"userId": "b"},), ({"previousId": "a"},), (None, "a")],
    )
    def test_both_ids_required(self, serializer, args):
        with pytest.raises(ValidationError):
            serializer.alias(*args)

    def test_non_strict_validator_still_rejects(self):
        """A lenient validator never lets a malformed event through."""
        serializer = EventSerializer(validator=EventValidator(strict=False))

        with pytest.raises(ValidationError, match="previousId") as exc_info:
            serializer.alias("b")

        assert exc_info.value.event_type == "alias"

    def test_object_ids_must_be_strings(self, serializer):
        with pytest.raises(ValidationError):
            serializer.alias({"userId": {"id": "b"}, "previousId": "a"})


class TestTemplates:
    """Test template precedence and context handling."""

    def test_reset_is_noop(self, serializer):
        assert serializer.reset() is None

    def test_template_overrides_default(self):
        """Explicit template fields beat the default template."""
        serializer = EventSerializer(
            template=lambda event_type, name: {
                "message_id": "fixed-id",
                "sent_at": "2024-01-01T00:00:00.000Z",
                "write_key": "wk_123",
            }
        )
        event = serializer.track("Sign Up")

        assert event.message_id == "fixed-id"
        assert event.sent_at == "2024-01-01T00:00:00.000Z"
        assert event.write_key == "wk_123"

    def test_template_keeps_defaults_it_does_not_set(self):
        serializer = EventSerializer(template=lambda event_type, name: {"write_key": "wk"})
        event = serializer.page()

        assert event.message_id
        assert event.sent_at

    def test_template_receives_type_and_name(self):
        calls = []

        def template(event_type, name):
            calls.append((event_type, name))
            return {}

        serializer = EventSerializer(template=template)
        serializer.track("Sign Up")
        serializer.page("Docs", "Install")
        serializer.screen({"a": 1})
        serializer.identify("u1")
        serializer.group("g1")
        serializer.alias("b", "a")

        assert calls == [
            ("track", "Sign Up"),
            ("page", "Install"),
            ("screen", None),
            ("identify", None),
            ("group", None),
            ("alias", None),
        ]

    def test_unknown_template_field_rejected(self):
        serializer = EventSerializer(template=lambda event_type, name: {"messageId": "x"})

        with pytest.raises(ValidationError):
            serializer.track("Sign Up")

    def test_call_fields_beat_template_identity(self):
        """Type-specific values win; unset ones leave the template value."""
        serializer = EventSerializer(template=lambda event_type, name: {"user_id": "tmpl"})

        assert serializer.identify("u1").user_id == "u1"
        assert serializer.identify({"plan": "pro"}).user_id == "tmpl"
        assert serializer.track("Sign Up").user_id == "tmpl"

    def test_template_context_is_not_shared(self):
        """Each event gets its own deep copy of the template context."""
        shared = {"library": {"name": "web", "version": "1.0"}}
        serializer = EventSerializer(template=lambda event_type, name: {"context": shared})

        first = serializer.track("A")
        second = serializer.track("B")

        assert first.context == second.context == shared
        assert first.context is not second.context
        assert first.context["library"] is not shared["library"]

    def test_context_traits_removed_for_identity_events(self):
        """identify/group keep traits at the root only."""
        serializer = EventSerializer(
            template=lambda event_type, name: {"context": {"traits": {"crossDomainId": "x"}}}
        )

        assert "traits" not in serializer.identify("u1").context
        assert "traits" not in serializer.group("g1").context
        assert serializer.track("A").context["traits"] == {"crossDomainId": "x"}

    def test_call_context_overrides_template_context(self):
        serializer = EventSerializer(
            template=lambda event_type, name: {
                "context": {"locale": "fr-FR", "library": {"name": "web"}}
            }
        )
        event = serializer.track("A", context={"locale": "en-US"})

        assert event.context == {"locale": "en-US", "library": {"name": "web"}}

    def test_context_inference_applied(self, serializer):
        event = serializer.page(
            "Docs",
            context={"page": {"url": "https://example.com/docs?utm_source=ads"}},
        )

        assert event.context["page"]["host"] == "example.com"
        assert event.context["page"]["path"] == "/docs"
        assert event.context["campaign"] == {"source": "ads"}

    def test_context_inference_can_be_disabled(self):
        serializer = EventSerializer(infer_context=False)
        event = serializer.page(context={"page": {"url": "https://example.com/docs"}})

        assert event.context == {"page": {"url": "https://example.com/docs"}}

    def test_invalid_context_override(self, serializer):
        with pytest.raises(ValidationError):
            serializer.track("A", context="en-US")
