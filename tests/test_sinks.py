"""
Tests for the diagnostic sink and dummy analytics.
"""

from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from analytics_events import DiagnosticSink, Redactor, create_dummy_analytics


class TestDummyAnalytics:
    """End-to-end checks through create_dummy_analytics()."""

    @pytest.mark.asyncio
    async def test_logs_events_by_type(self, dummy_analytics):
        await dummy_analytics.page({"env": "prod"})
        await dummy_analytics.identify({"name": "John Doe", "email": "john.doe@gmail.com"})
        await dummy_analytics.track("Sign Up")

        sink = dummy_analytics.sink
        identifies = sink.of_type("identify")
        tracks = sink.of_type("track")
        pages = sink.of_type("page")

        assert len(identifies) == 1
        assert len(tracks) == 1
        assert len(pages) == 1
        assert identifies[0].traits == {"name": "John Doe", "email": "john.doe@gmail.com"}
        assert tracks[0].event == "Sign Up"
        assert pages[0].properties == {"env": "prod"}

    @pytest.mark.asyncio
    async def test_log_keeps_call_order(self, dummy_analytics):
        await dummy_analytics.track("A")
        await dummy_analytics.page("Docs")
        await dummy_analytics.track("B")

        assert [event.type for event in dummy_analytics.log] == ["track", "page", "track"]
        assert dummy_analytics.log is dummy_analytics.sink.events

    @pytest.mark.asyncio
    async def test_default_prints_without_log(self, capsys):
        analytics = create_dummy_analytics()
        await analytics.track("Sign Up")

        out = capsys.readouterr().out
        assert out.startswith("Analytics event track: {")
        assert '"event": "Sign Up"' in out
        assert analytics.log == []

    @pytest.mark.asyncio
    async def test_silent_prints_nothing(self, capsys):
        analytics = create_dummy_analytics(log=True, silent=True)
        await analytics.track("Sign Up")

        assert capsys.readouterr().out == ""
        assert len(analytics.log) == 1

    @pytest.mark.asyncio
    async def test_template_is_applied(self):
        analytics = create_dummy_analytics(
            log=True,
            silent=True,
            template=lambda event_type, name: {"write_key": "wk_test"},
        )
        event = await analytics.track("Sign Up")

        assert event.write_key == "wk_test"

    @pytest.mark.asyncio
    async def test_reset_keeps_log(self, dummy_analytics):
        await dummy_analytics.identify("u1")
        await dummy_analytics.reset()
        event = await dummy_analytics.track("ev")

        assert event.user_id is None
        assert len(dummy_analytics.log) == 2


class TestDiagnosticSink:
    """Direct DiagnosticSink checks."""

    @pytest.mark.asyncio
    async def test_prints_to_stream(self, serializer):
        stream = io.StringIO()
        sink = DiagnosticSink(stream=stream)

        await sink(serializer.track("Sign Up"))

        header, body = stream.getvalue().split(": ", 1)
        assert header == "Analytics event track"
        assert json.loads(body)["event"] == "Sign Up"

    @pytest.mark.asyncio
    async def test_redacts_printed_output_only(self, serializer):
        stream = io.StringIO()
        sink = DiagnosticSink(log=True, stream=stream, redactor=Redactor())
        event = serializer.identify("u1", {"email": "john@example.com", "plan": "pro"})

        await sink(event)

        printed = stream.getvalue()
        assert "john@example.com" not in printed
        assert '"plan": "pro"' in printed
        assert sink.events[0].traits["email"] == "john@example.com"

    @pytest.mark.asyncio
    async def test_clear(self, serializer):
        sink = DiagnosticSink(log=True, silent=True)
        await sink(serializer.track("A"))

        sink.clear()

        assert sink.events == []

    @pytest.mark.asyncio
    async def test_never_fails(self, serializer):
        sink = DiagnosticSink(log=False, silent=True)

        assert await sink(serializer.page()) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value, printed",
        [
            (datetime(2026, 1, 1, tzinfo=timezone.utc), "2026-01-01 00:00:00+00:00"),
            (Decimal("9.99"), "9.99"),
            (UUID("12345678-1234-5678-1234-567812345678"), "12345678-1234-5678-1234-567812345678"),
        ],
    )
    async def test_prints_values_json_cannot_encode(self, value, printed):
        stream = io.StringIO()
        analytics = create_dummy_analytics(log=True, stream=stream)

        event = await analytics.track("Order Completed", {"value": value})

        body = json.loads(stream.getvalue().split(": ", 1)[1])
        assert body["properties"]["value"] == printed
        assert analytics.log == [event]
        assert event.properties["value"] == value

    @pytest.mark.asyncio
    async def test_redacted_output_with_values_json_cannot_encode(self, serializer):
        stream = io.StringIO()
        sink = DiagnosticSink(stream=stream, redactor=Redactor())

        await sink(serializer.identify("u1", {"email": "a@example.com", "since": Decimal("1.5")}))

        body = json.loads(stream.getvalue().split(": ", 1)[1])
        assert body["traits"] == {"email": "[REDACTED]", "since": "1.5"}
