"""
Filename sanitizing, YouTube URL checks and attachment headers.
"""

import re
from urllib.parse import parse_qs, quote, urlparse

MAX_FILENAME_LENGTH = 100
DEFAULT_TITLE = "audio"
DEFAULT_PLAYLIST_TITLE = "playlist"

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")

_YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "music.youtube.com"}
_SHORT_HOSTS = {"youtu.be", "www.youtu.be"}
_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{6,}$")


def sanitize_filename(title: str | None, placeholder: str = DEFAULT_TITLE) -> str:
    name = _UNSAFE_CHARS.sub("_", title or "")
    name = _WHITESPACE.sub(" ", name).strip()
    # truncation can leave a trailing space behind
    name = name[:MAX_FILENAME_LENGTH].rstrip()
    return name or placeholder


def unique_filename(base: str, taken: set) -> str:
    """Return ``base`` or ``base (n)`` so that it is not in ``taken``; adds the result to ``taken``."""
    candidate = base
    n = 2
    while candidate.lower() in taken:
        suffix = f" ({n})"
        candidate = base[:MAX_FILENAME_LENGTH - len(suffix)].rstrip() + suffix
        n += 1
    taken.add(candidate.lower())
    return candidate


def normalize_url(url: str | None) -> str:
    url = (url or "").strip()
    if url and "://" not in url:
        url = "https://" + url
    return url


def _parse(url: str):
    try:
        parsed = urlparse(normalize_url(url))
    except ValueError:
        return None
    if parsed.scheme not in {"http", "https"}:
        return None
    return parsed


def is_video_url(url: str | None) -> bool:
    if not url:
        return False
    parsed = _parse(url)
    if parsed is None:
        return False
    host = (parsed.hostname or "").lower()
    if host in _SHORT_HOSTS:
        return bool(_VIDEO_ID.match(parsed.path.lstrip("/").split("/")[0]))
    if host not in _YOUTUBE_HOSTS:
        return False
    if parsed.path == "/watch":
        return bool(_VIDEO_ID.match((parse_qs(parsed.query).get("v") or [""])[0]))
    for prefix in ("/shorts/", "/live/", "/embed/"):
        if parsed.path.startswith(prefix):
            return bool(_VIDEO_ID.match(parsed.path[len(prefix):].split("/")[0]))
    return False


def playlist_id(url: str | None) -> str | None:
    if not url:
        return None
    parsed = _parse(url)
    if parsed is None or (parsed.hostname or "").lower() not in _YOUTUBE_HOSTS:
        return None
    if parsed.path not in {"/playlist", "/watch"}:
        return None
    list_id = (parse_qs(parsed.query).get("list") or [""])[0]
    return list_id if _VIDEO_ID.match(list_id) else None


def is_playlist_url(url: str | None) -> bool:
    return playlist_id(url) is not None


def playlist_url(url: str) -> str:
    """Canonical playlist page for a URL that carries a ``list=`` parameter."""
    return f"https://www.youtube.com/playlist?list={playlist_id(url)}"


def video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def content_disposition(filename: str) -> str:
    try:
        filename.encode("ascii")
    except UnicodeEncodeError:
        fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
    return f'attachment; filename="{filename}"'
