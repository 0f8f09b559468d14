"""Tests for Pydantic models."""

import pytest
from datetime import datetime, timezone

from journeytrack.models.base import generate_ulid, parse_datetime
from journeytrack.models.events import EventType, QueuedEvent
from journeytrack.models.journey import (
    ConversionConfig,
    ConversionEvent,
    ConversionType,
    Journey,
    PageVisit,
)
from journeytrack.models.traffic import TrafficSource, TrafficType


class TestBaseModel:
    """Tests for BaseModel helpers."""

    def test_generate_ulid(self):
        """Test ULID generation."""
        ulid1 = generate_ulid()
        ulid2 = generate_ulid()

        assert len(ulid1) == 26
        assert ulid1 != ulid2

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2026-03-01T12:00:00Z", datetime(2026, 3, 1, 12, tzinfo=timezone.utc)),
            ("2026-03-01T12:00:00", datetime(2026, 3, 1, 12, tzinfo=timezone.utc)),
            (1772366400000, datetime(2026, 3, 1, 12, tzinfo=timezone.utc)),
            (None, None),
            ("", None),
            ("yesterday", None),
        ],
    )
    def test_parse_datetime(self, value, expected):
        """Test ISO, epoch-millisecond and invalid inputs."""
        assert parse_datetime(value) == expected

    def test_model_serialization(self):
        """Test API serialization of enums and None fields."""
        conversion = ConversionEvent(event="form_submit", value=1)

        assert conversion.to_api() == {"event": "form_submit", "value": 1.0, "element_context": None}
        assert conversion.to_api(exclude_none=True) == {"event": "form_submit", "value": 1.0}

    def test_traffic_source_is_frozen(self):
        """Test that a captured traffic source cannot change."""
        source = TrafficSource(type=TrafficType.SEARCH, source="google", medium="organic")

        with pytest.raises(ValueError):
            source.source = "bing"


class TestJourney:
    """Tests for the Journey model."""

    def test_from_api(self):
        """Test deserialization of a journey lookup."""
        journey = Journey.from_api(
            {
                "id": "journey-1",
                "traffic_source": {"type": "email", "source": "newsletter"},
                "journey": {"pages": [{"url": "https://a.test/", "time_spent": 4}]},
                "session": {
                    "start_time": "2026-03-01T11:00:00Z",
                    "end_time": "2026-03-01T11:30:00Z",
                    "is_active": False,
                },
                "unknown_field": "ignored",
            }
        )

        assert journey.traffic_source.type == "email"
        assert journey.journey.pages[0] == PageVisit(url="https://a.test/", time_spent=4)
        assert journey.engagement.visit_count == 1
        now = datetime(2026, 3, 1, 11, 30, 3, tzinfo=timezone.utc)
        assert journey.seconds_since_end(now) == 3

    def test_seconds_since_end_when_active(self):
        journey = Journey.from_api({"id": "j", "session": {"start_time": "2026-03-01T11:00:00Z"}})
        assert journey.seconds_since_end(datetime.now(timezone.utc)) is None


class TestConversionConfig:
    """Tests for ConversionConfig."""

    def test_missing_type_defaults_to_button(self):
        config = ConversionConfig.from_api({"conversion_name": "Signup", "conversion_type": ""})
        assert config.conversion_type == ConversionType.BUTTON

    def test_page_visit(self):
        config = ConversionConfig.from_api(
            {"conversion_name": "Thanks", "conversion_type": "page_visit", "page_url": "/thanks"}
        )
        assert config.conversion_type == "page_visit"


class TestQueuedEvent:
    """Tests for queued events."""

    def test_constructors(self):
        page = PageVisit(url="https://a.test/")

        assert QueuedEvent.page_view(page).data is page
        assert QueuedEvent.chat_interaction().type == EventType.CHAT_INTERACTION
        assert QueuedEvent.conversion(ConversionEvent(event="x")).type == "conversion"
        assert QueuedEvent.chat_interaction().id != QueuedEvent.chat_interaction().id
