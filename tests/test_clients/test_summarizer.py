"""Tests for the OpenAI summarizer."""

from unittest.mock import AsyncMock

import pytest
from aiolimiter import AsyncLimiter

from video_notifier.clients.summarizer import (
    MAX_TRANSCRIPT_CHARS,
    Summarizer,
    VideoSummary,
    build_prompt,
    parse_summary,
)
from video_notifier.exceptions import ConfigurationError, SummarizationError
from tests.support.fakes import completion_response


class TestParseSummary:
    def test_plain_json(self):
        summary = parse_summary('{"briefSummary": "Short.", "keyPoints": ["a"]}', "vid1")
        assert summary.brief_summary == "Short."
        assert summary.key_points == ["a"]

    def test_fenced_json(self):
        raw = '```json\n{"briefSummary": "Fenced.", "keyPoints": []}\n```'
        assert parse_summary(raw, "vid1").brief_summary == "Fenced."

    def test_missing_key_points_defaults_to_empty(self):
        assert parse_summary('{"briefSummary": "Only this."}', "vid1").key_points == []

    @pytest.mark.parametrize(
        "raw",
        [None, "", "   ", "not json", '{"keyPoints": ["a"]}', '{"briefSummary": ""}'],
    )
    def test_unusable_reply_raises(self, raw):
        with pytest.raises(SummarizationError) as exc_info:
            parse_summary(raw, "vid1")
        assert exc_info.value.video_id == "vid1"

    def test_to_content_uses_camel_case(self):
        summary = VideoSummary(brief_summary="x", key_points=["y"])
        assert summary.to_content() == {"briefSummary": "x", "keyPoints": ["y"]}


class TestBuildPrompt:
    def test_language_in_prompt(self):
        assert '"de" language' in build_prompt("Ein langes Transkript " * 10, "de")

    def test_short_transcript_note(self):
        assert "very short or incomplete" in build_prompt("tiny", "en")
        assert "very short or incomplete" not in build_prompt("word " * 50, "en")

    def test_transcript_truncated(self):
        prompt = build_prompt("x" * (MAX_TRANSCRIPT_CHARS + 500), "en")
        assert "x" * MAX_TRANSCRIPT_CHARS in prompt
        assert "x" * (MAX_TRANSCRIPT_CHARS + 1) not in prompt


class TestSummarizer:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            Summarizer()

    @pytest.mark.asyncio
    async def test_summarize_requests_json_object(self, openai_client):
        summarizer = Summarizer(client=openai_client, model="gpt-4o-mini")

        summary = await summarizer.summarize("vid1", "Title", "A transcript " * 20, "fr")

        assert summary.brief_summary == "A short summary."
        assert summary.key_points == ["First", "Second"]

        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert '"fr" language' in kwargs["messages"][0]["content"]
        assert "A transcript" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_empty_language_defaults_to_english(self, openai_client):
        summarizer = Summarizer(client=openai_client, model="m")
        await summarizer.summarize("vid1", "Title", "text " * 20, "")

        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert '"en" language' in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_unparseable_reply_raises(self, openai_client):
        openai_client.chat.completions.create = AsyncMock(
            return_value=completion_response("I cannot do that")
        )
        summarizer = Summarizer(client=openai_client, model="m")

        with pytest.raises(SummarizationError):
            await summarizer.summarize("vid1", "Title", "text", "en")

    @pytest.mark.asyncio
    async def test_custom_rate_limiter_used(self, openai_client):
        limiter = AsyncLimiter(max_rate=5, time_period=60)
        summarizer = Summarizer(client=openai_client, model="m", rate_limiter=limiter)

        await summarizer.summarize("vid1", "Title", "text " * 20)

        assert summarizer.rate_limiter is limiter
        assert not limiter.has_capacity(5)
