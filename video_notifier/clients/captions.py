"""YouTube transcript fetching with a database cache.

Transcripts are looked up in video_captions first; on a miss the best
available caption track is downloaded with youtube-transcript-api and stored.
A video with captions disabled or no tracks yields an empty transcript,
which the queue worker treats as "nothing to summarize".

Track preference (first match wins):
    1. manual track in the default language
    2. auto-generated track in the default language
    3. manual English track
    4. auto-generated English track
    5. any manual track
    6. first listed track

youtube-transcript-api is synchronous, so downloads run in a worker thread.
"""

import asyncio
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeTranscriptApi,
)

from video_notifier.config import get_external_call_timeout
from video_notifier.database import insert_ignoring_conflicts
from video_notifier.models import VideoCaption, utcnow
from video_notifier.utils.logging import get_logger

log = get_logger(__name__)

# Permanent "this video has no usable captions" outcomes
NO_TRANSCRIPT_ERRORS = (TranscriptsDisabled, NoTranscriptFound, VideoUnavailable)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class CaptionResult:
    transcript: str
    language: str
    from_cache: bool = False


def select_best_track(tracks: Sequence[Any], default_language: str = "en") -> Any | None:
    """Pick the preferred caption track.

    Args:
        tracks: Objects exposing language_code and is_generated
            (youtube_transcript_api Transcript instances).
        default_language: Preferred language code.

    Returns:
        The chosen track, or None when there are no tracks.
    """
    if not tracks:
        return None

    def find(language: str | None, manual_only: bool) -> Any | None:
        for track in tracks:
            if language is not None and track.language_code != language:
                continue
            if manual_only and track.is_generated:
                continue
            return track
        return None

    candidates = [
        find(default_language, manual_only=True),
        find(default_language, manual_only=False),
    ]
    if default_language != "en":
        candidates += [find("en", manual_only=True), find("en", manual_only=False)]
    candidates.append(find(None, manual_only=True))

    for track in candidates:
        if track is not None:
            return track
    return tracks[0]


def join_snippets(snippets: Any) -> str:
    """Flatten fetched snippets into one whitespace-normalized string."""
    text = " ".join(snippet.text for snippet in snippets)
    return _WHITESPACE_RE.sub(" ", text).strip()


class CaptionFetcher:
    """Cache-first transcript lookup.

    Usage:
        fetcher = CaptionFetcher(async_session_factory)
        result = await fetcher.fetch("dQw4w9WgXcQ", title="Some video")
        if result is None:
            ...  # no captions
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        api: YouTubeTranscriptApi | None = None,
        default_language: str = "en",
        timeout: float | None = None,
    ):
        self.session_factory = session_factory
        self.api = api or YouTubeTranscriptApi()
        self.default_language = default_language
        self.timeout = timeout if timeout is not None else get_external_call_timeout()

    async def fetch(self, video_id: str, title: str | None = None) -> CaptionResult | None:
        """Return the transcript for a video, or None if it has no captions.

        Raises:
            CouldNotRetrieveTranscript: Transient YouTube failure after retries.
            TimeoutError: Download exceeded the external call timeout.
        """
        cached = await self.get_cached(video_id)
        if cached is not None:
            log.debug("captions_cache_hit", video_id=video_id)
            return CaptionResult(cached.transcript, cached.language, from_cache=True)

        downloaded = await asyncio.wait_for(
            asyncio.to_thread(self._download, video_id), timeout=self.timeout
        )
        if downloaded is None:
            log.info("captions_not_available", video_id=video_id)
            return None

        transcript, language = downloaded
        if not transcript:
            log.info("captions_empty", video_id=video_id)
            return None

        await self._store(video_id, transcript, language, title)
        log.info(
            "captions_fetched",
            video_id=video_id,
            language=language,
            length=len(transcript),
        )
        return CaptionResult(transcript, language)

    async def get_cached(self, video_id: str) -> VideoCaption | None:
        async with self.session_factory() as db:
            return await db.get(VideoCaption, video_id)

    async def _store(
        self, video_id: str, transcript: str, language: str, title: str | None
    ) -> None:
        async with self.session_factory() as db:
            stmt = insert_ignoring_conflicts(db, VideoCaption.__table__, "video_id").values(
                video_id=video_id,
                transcript=transcript,
                language=language,
                title=title,
                created_at=utcnow(),
            )
            await db.execute(stmt)
            await db.commit()

    @retry(
        retry=(
            retry_if_exception_type(CouldNotRetrieveTranscript)
            & retry_if_not_exception_type(NO_TRANSCRIPT_ERRORS)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _download(self, video_id: str) -> tuple[str, str] | None:
        """Blocking download of the best track (runs in a worker thread)."""
        try:
            tracks = list(self.api.list(video_id))
            track = select_best_track(tracks, self.default_language)
            if track is None:
                return None
            return join_snippets(track.fetch()), track.language_code
        except NO_TRANSCRIPT_ERRORS as e:
            log.info("captions_unavailable", video_id=video_id, reason=type(e).__name__)
            return None
