"""Tests for session termination delivery."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from journeytrack.execution.retry_policy import RetryConfig, RetryPolicy
from journeytrack.models.journey import BounceEvent, BounceType, ExitReason, PageVisit
from journeytrack.services.delivery import (
    BEACON_TRIGGERS,
    GuaranteedBeaconChannel,
    RetryingAsyncChannel,
    SessionFinalization,
    select_channel,
)
from journeytrack.utils.exceptions import JourneyApiError

END_TIME = datetime(2026, 3, 1, 12, 0, 2, tzinfo=timezone.utc)


@pytest.fixture
def bounce_final():
    event = BounceEvent(
        timestamp=END_TIME,
        bounce_type=BounceType.IMMEDIATE,
        page_url="https://shop.example.com/products",
        page_title="Products",
        session_duration=2,
        scroll_depth=0,
        exit_trigger="tab_hidden",
    )
    return SessionFinalization(
        journey_id="journey-123",
        reason=ExitReason.TAB_HIDDEN,
        end_time=END_TIME,
        duration=2,
        exit_page="https://shop.example.com/products",
        engagement_score=10,
        bounce_type=BounceType.IMMEDIATE,
        bounce_event=event,
        final_page=PageVisit(url="https://shop.example.com/products", time_spent=2),
        final_page_index=0,
    )


class TestSessionFinalization:
    """Tests for the finalization payloads."""

    def test_critical_data_shape(self, bounce_final):
        data = bounce_final.to_critical_data()

        assert data["session"] == {
            "is_active": False,
            "end_time": END_TIME.isoformat(),
            "duration": 2,
            "exit_page": "https://shop.example.com/products",
            "exit_reason": "tab_hidden",
            "chat_active": False,
        }
        assert data["journey"] == {"bounce_rate": True}
        assert data["engagement"] == {"engagement_score": 10}
        assert data["bounce_event"]["bounce_type"] == "immediate"
        assert data["final_page"]["index"] == 0
        assert data["final_page"]["time_spent"] == 2

    def test_not_a_bounce(self):
        final = SessionFinalization(
            journey_id="j",
            reason=ExitReason.NATURAL,
            end_time=END_TIME,
            duration=600,
            exit_page="https://a.test/",
            engagement_score=55,
        )

        assert final.is_bounce is False
        assert final.to_critical_data()["bounce_event"] is None
        assert "final_page" not in final.to_critical_data()
        assert final.journey_fields() == {
            "journey.bounce_rate": False,
            "engagement.engagement_score": 55,
        }

    def test_journey_fields_include_final_page(self, bounce_final):
        fields = bounce_final.journey_fields()

        assert fields["journey.pages.0.time_spent"] == 2
        assert fields["journey.pages.0.scroll_depth"] == 0
        assert fields["journey.pages.0.interactions"] == 0


class TestChannelSelection:
    """Tests for select_channel."""

    @pytest.mark.parametrize("reason", sorted(BEACON_TRIGGERS))
    def test_teardown_triggers_use_beacon(self, reason, mock_repository, retry_policy):
        beacon = GuaranteedBeaconChannel(mock_repository)
        retrying = RetryingAsyncChannel(mock_repository, retry_policy)
        assert select_channel(reason, beacon, retrying) is beacon

    def test_natural_end_uses_retrying_channel(self, mock_repository, retry_policy):
        beacon = GuaranteedBeaconChannel(mock_repository)
        retrying = RetryingAsyncChannel(mock_repository, retry_policy)
        assert select_channel(ExitReason.NATURAL, beacon, retrying) is retrying


class TestGuaranteedBeaconChannel:
    """Tests for the beacon channel."""

    def test_deliver_nowait_sends_synchronously(self, mock_repository, bounce_final):
        GuaranteedBeaconChannel(mock_repository).deliver_nowait(bounce_final)

        journey_id, payload = mock_repository.sync_critical_data_beacon.call_args.args
        assert journey_id == "journey-123"
        assert payload == bounce_final.to_critical_data()


class TestRetryingAsyncChannel:
    """Tests for the awaited channel."""

    @pytest.mark.asyncio
    async def test_writes_bounce_status_and_fields(
        self, mock_repository, retry_policy, bounce_final
    ):
        channel = RetryingAsyncChannel(mock_repository, retry_policy)

        assert await channel.deliver(bounce_final) is True

        mock_repository.add_bounce_event.assert_awaited_once_with(
            "journey-123", bounce_final.bounce_event.to_api()
        )
        mock_repository.update_session_status.assert_awaited_once_with(
            "journey-123", bounce_final.session_status()
        )
        mock_repository.update_journey.assert_awaited_once_with(
            "journey-123", bounce_final.journey_fields()
        )
        mock_repository.sync_critical_data_beacon.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, mock_repository, bounce_final):
        mock_repository.update_session_status.side_effect = JourneyApiError(
            "api/visitor-journey/journey-123/session-status", status_code=500
        )
        policy = RetryPolicy(RetryConfig(max_retries=1), sleep=AsyncMock())
        channel = RetryingAsyncChannel(mock_repository, policy)

        assert await channel.deliver(bounce_final) is False
        assert mock_repository.update_session_status.await_count == 2
        mock_repository.update_journey.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_deliver_nowait_schedules_task(
        self, mock_repository, retry_policy, bounce_final
    ):
        channel = RetryingAsyncChannel(mock_repository, retry_policy)

        channel.deliver_nowait(bounce_final)
        await channel.wait_pending()

        mock_repository.update_session_status.assert_awaited_once()
