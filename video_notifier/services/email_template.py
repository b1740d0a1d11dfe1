"""New-video email rendering.

Pure functions: the queue worker renders one HTML body per subscriber and
stores it on the ledger row; the email worker derives the plain-text part
from that HTML at send time.
"""

import html
import re
from datetime import datetime
from typing import Any

UPGRADE_CTA_TEXT = "Want more features? Upgrade your plan!"

_TAG_RE = re.compile(r"<[^>]*>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def video_url(video_id: str) -> str:
    return f"https://youtube.com/watch?v={video_id}"


def format_published(published: str) -> str:
    """Human readable publish time; unparseable values are shown as given."""
    if not published:
        return ""
    try:
        published_at = datetime.fromisoformat(published.replace("Z", "+00:00"))
    except ValueError:
        return published
    return published_at.strftime("%B %d, %Y %H:%M %Z").strip()


def render_email_html(
    video_title: str,
    channel_name: str,
    published: str,
    video_id: str,
    summary: dict[str, Any] | None = None,
    captions: str = "",
    show_transcript: bool = False,
    upgrade_cta: str = "",
) -> str:
    """Render the notification email body.

    Args:
        video_title: Video title (escaped).
        channel_name: Channel display name (escaped).
        published: Publish timestamp from the feed (ISO 8601).
        video_id: YouTube video id, used for the watch link.
        summary: {"briefSummary": str, "keyPoints": [str, ...]} or None.
        captions: Transcript text, included only when show_transcript is set.
        show_transcript: Append the full transcript below the summary.
        upgrade_cta: Call-to-action block for free-plan subscribers.

    Returns:
        Complete HTML document.
    """
    url = video_url(video_id)
    title = html.escape(video_title)
    channel = html.escape(channel_name)

    summary_html = ""
    if summary:
        brief = html.escape(summary.get("briefSummary") or "")
        points_html = "".join(
            f'\n        <p class="key-point">• {html.escape(point)}</p>'
            for point in summary.get("keyPoints") or []
        )
        summary_html = f"""
  <div class="summary">
    <p>{brief}</p>
    <div>{points_html}
    </div>
  </div>"""

    transcript_html = ""
    if show_transcript and captions:
        transcript_html = f"""
  <div class="transcript">
    <p>{html.escape(captions)}</p>
  </div>"""

    cta_html = ""
    if upgrade_cta:
        cta_html = f"""
  <div class="upgrade-cta">
    {html.escape(upgrade_cta)}
  </div>"""

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>New Video from {channel}</title>
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; max-width: 600px; margin: 0 auto; padding: 20px; color: #1a1a1a; }}
    .video-title {{ color: #1a1a1a; font-size: 24px; margin-bottom: 20px; font-weight: bold; }}
    .video-date {{ color: #666; margin: 20px 0; font-size: 12px; }}
    .key-point {{ margin-bottom: 10px; }}
    .transcript {{ margin-top: 30px; padding-top: 20px; }}
    .upgrade-cta {{ margin-top: 30px; padding: 20px; background: #f8f9fa; border-radius: 5px; }}
  </style>
</head>
<body>
  <h1 class="video-title">{title}</h1>
  <p class="video-date">{channel} · {html.escape(format_published(published))}</p>
{summary_html}
{transcript_html}
  <p>👉 Watch the video: <a href="{url}">{url}</a></p>
{cta_html}
</body>
</html>"""


def html_to_text(body: str) -> str:
    """Plain-text alternative: markup stripped, entities decoded, blank runs collapsed."""
    # Drop the <head> so CSS and the <title> don't leak into the text part
    body = re.sub(r"<head>.*?</head>", "", body, flags=re.DOTALL | re.IGNORECASE)
    text = html.unescape(_TAG_RE.sub("", body))
    lines = [line.strip() for line in text.splitlines()]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()
