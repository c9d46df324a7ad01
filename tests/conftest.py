"""
Pytest configuration for analytics event tests.
"""

from __future__ import annotations

import pytest


@pytest.fixture
def serializer():
    """Create a serializer with the default template."""
    from analytics_events import EventSerializer

    return EventSerializer()


@pytest.fixture
def dummy_analytics():
    """Create a silent dummy session that keeps every delivered event."""
    from analytics_events import create_dummy_analytics

    return create_dummy_analytics(log=True, silent=True)


@pytest.fixture
def delivered():
    """List collecting events passed to a recording handler."""
    return []


@pytest.fixture
def session(delivered):
    """Create a session whose async handler records events in `delivered`."""
    from analytics_events import AnalyticsSession

    async def handler(event):
        delivered.append(event)

    return AnalyticsSession(handler)
