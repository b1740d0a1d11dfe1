"""Video summarization via the OpenAI chat completions API.

Produces {"briefSummary": str, "keyPoints": [str, ...]} for a transcript,
written in the transcript's language. Calls are throttled with an
AsyncLimiter shared by every summarizer in the process.
"""

import json
import re
from typing import Any

from aiolimiter import AsyncLimiter
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from video_notifier.config import get_openai_api_key, get_summary_model
from video_notifier.exceptions import ConfigurationError, SummarizationError
from video_notifier.utils.logging import get_logger

log = get_logger(__name__)

# gpt-4o-mini context is far larger; this keeps cost per video bounded
MAX_TRANSCRIPT_CHARS = 100_000
SHORT_TRANSCRIPT_CHARS = 50

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")

# 30 requests per minute across the process
_rate_limiter = AsyncLimiter(max_rate=30, time_period=60)


class VideoSummary(BaseModel):
    """Parsed summary; serialized with the camelCase keys stored in ai_content."""

    model_config = ConfigDict(populate_by_name=True)

    brief_summary: str = Field(..., alias="briefSummary", min_length=1)
    key_points: list[str] = Field(default_factory=list, alias="keyPoints")

    def to_content(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def build_prompt(transcript: str, language: str) -> str:
    note = ""
    if len(transcript) < SHORT_TRANSCRIPT_CHARS:
        note = (
            "\nNote: This transcript appears to be very short or incomplete. "
            "Please include this limitation in your summary.\n"
        )

    return f"""Please analyze this YouTube video transcript and provide:
1. A concise summary (2-3 sentences)
2. Key points or takeaways (3-5 bullet points)

Important:
- Provide the response in "{language}" language
- Format your response strictly as a JSON object with these exact fields:
  {{
    "briefSummary": "your summary here",
    "keyPoints": ["point 1", "point 2", "point 3"]
  }}
{note}
Transcript:
{transcript[:MAX_TRANSCRIPT_CHARS]}
"""


def parse_summary(raw: str | None, video_id: str) -> VideoSummary:
    """Parse the model's reply, tolerating a ```json fenced block.

    Raises:
        SummarizationError: Empty reply, invalid JSON, or missing fields.
    """
    if not raw or not raw.strip():
        raise SummarizationError("Empty summary response", video_id)

    cleaned = _FENCE_RE.sub("", raw.strip())
    try:
        return VideoSummary.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError) as e:
        log.error("summary_parse_failed", video_id=video_id, error=str(e), raw=raw[:500])
        raise SummarizationError(f"Unparseable summary response: {e}", video_id) from e


class Summarizer:
    """OpenAI-backed summarizer.

    Usage:
        summarizer = Summarizer()
        summary = await summarizer.summarize("abc123", "Title", transcript, "en")
        content = summary.to_content()
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        rate_limiter: AsyncLimiter | None = None,
    ):
        if client is None:
            api_key = get_openai_api_key()
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY environment variable is required")
            client = AsyncOpenAI(api_key=api_key, max_retries=2)
        self.client = client
        self.model = model or get_summary_model()
        self.rate_limiter = rate_limiter or _rate_limiter

    async def summarize(
        self, video_id: str, title: str, transcript: str, language: str = "en"
    ) -> VideoSummary:
        """Summarize a transcript.

        Raises:
            SummarizationError: The model returned nothing usable.
            openai.OpenAIError: API failure after the client's own retries.
        """
        language = language or "en"
        log.info(
            "summary_requested",
            video_id=video_id,
            title=title[:100],
            language=language,
            transcript_length=len(transcript),
        )

        async with self.rate_limiter:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": (
                            "You are a skilled content analyzer. Provide concise, informative "
                            f'summaries in "{language}" language. Always format your response '
                            "as a valid JSON object. If the transcript is missing or very "
                            "short, acknowledge this limitation in your summary."
                        ),
                    },
                    {"role": "user", "content": build_prompt(transcript, language)},
                ],
                temperature=0.7,
                response_format={"type": "json_object"},
            )

        content = response.choices[0].message.content if response.choices else None
        summary = parse_summary(content, video_id)
        log.info(
            "summary_generated",
            video_id=video_id,
            summary_length=len(summary.brief_summary),
            points_count=len(summary.key_points),
        )
        return summary
