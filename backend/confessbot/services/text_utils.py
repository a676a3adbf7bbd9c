"""Text cleaning, hashtag extraction and comment-count levels."""
import re
from typing import List, NamedTuple

_SCRIPT_BLOCK = re.compile(r"<(script|style)\b[^<]*(?:(?!</\1>)<[^<]*)*</\1\s*>", re.IGNORECASE)
_JS_URI = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"\bon\w+\s*=\s*(\"[^\"]*\"|'[^']*')", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_HASHTAG = re.compile(r"#[A-Za-z0-9_]+")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def sanitize_input(text: str) -> str:
    """
    Strip script/style blocks, inline event handlers, `javascript:` URIs and
    remaining tags. Text cleaning for display, not an HTML sanitizer.
    """
    if not text:
        return ""
    cleaned = _SCRIPT_BLOCK.sub("", text)
    cleaned = _JS_URI.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    cleaned = _TAG.sub("", cleaned)
    return cleaned.strip()


def extract_hashtags(text: str) -> List[str]:
    return _HASHTAG.findall(text or "")


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class Level(NamedTuple):
    level: int
    symbol: str
    name: str


# (minimum comments, level, symbol), highest first
_LEVELS = (
    (1000, 7, "👑"),
    (500, 6, "🏅"),
    (200, 5, "🥇"),
    (100, 4, "🥈"),
    (50, 3, "🥉"),
    (25, 2, "🥈"),
)


def level_for(comment_count: int) -> Level:
    for minimum, level, symbol in _LEVELS:
        if comment_count >= minimum:
            return Level(level, symbol, f"Level {level}")
    return Level(1, "🥉", "Level 1")
