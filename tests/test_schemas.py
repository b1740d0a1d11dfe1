"""Tests for the VideoEvent wire schema and shared exceptions."""

import pytest
from pydantic import ValidationError

from video_notifier.exceptions import (
    HubError,
    InvalidStateTransitionError,
    SummarizationError,
    UnknownWorkerError,
)
from video_notifier.models import NotificationStatus
from video_notifier.schemas.video_event import VideoEvent


class TestVideoEvent:
    def test_accepts_camel_case(self):
        event = VideoEvent.model_validate(
            {"videoId": "abc", "channelId": "UC1", "authorName": "Chan", "title": "T"}
        )
        assert event.video_id == "abc"
        assert event.channel_id == "UC1"
        assert event.author_name == "Chan"
        assert event.timestamp is None

    def test_accepts_snake_case(self):
        event = VideoEvent(video_id="abc", channel_id="UC1")
        assert event.to_payload()["videoId"] == "abc"

    def test_payload_round_trips_through_camel_case(self):
        event = VideoEvent(videoId="abc", channelId="UC1", published="2026-10-18T10:00:00Z")
        payload = event.to_payload()

        assert set(payload) == {
            "videoId",
            "channelId",
            "title",
            "authorName",
            "published",
            "updated",
            "timestamp",
        }
        assert VideoEvent.model_validate(payload) == event

    @pytest.mark.parametrize(
        "payload",
        [{}, {"videoId": "abc"}, {"videoId": "", "channelId": "UC1"}, {"videoId": "a" * 33, "channelId": "UC1"}],
    )
    def test_invalid_payloads(self, payload):
        with pytest.raises(ValidationError):
            VideoEvent.model_validate(payload)


class TestExceptions:
    def test_invalid_transition_message(self):
        error = InvalidStateTransitionError(
            "Invalid transition: sent → failed",
            from_status=NotificationStatus.SENT,
            to_status=NotificationStatus.FAILED,
        )
        assert str(error) == "Invalid transition: sent → failed (from=sent, to=failed)"

    def test_summarization_error_carries_video_id(self):
        error = SummarizationError("Empty summary response", "vid1")
        assert error.video_id == "vid1"
        assert "vid1" in str(error)

    def test_hub_error_status_code(self):
        assert HubError("nope", status_code=503).status_code == 503

    def test_unknown_worker_is_key_error(self):
        error = UnknownWorkerError("ghost")
        assert isinstance(error, KeyError)
        assert str(error) == "Unknown worker: ghost"
