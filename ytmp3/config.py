import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

VERSION = "2.0"


def _env_int(name: str, default: int, minimum: int | None = None) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        logger.warning("%s=%s is below %s, clamping", name, value, minimum)
        return minimum
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_list(name: str) -> frozenset:
    raw = os.environ.get(name) or ""
    return frozenset(t.strip() for t in raw.split(",") if t.strip())


@dataclass(frozen=True)
class Settings:
    work_dir: str = field(default_factory=tempfile.gettempdir)
    playlist_concurrency: int = 3
    max_concurrent_jobs: int = 4
    retry_attempts: int = 3
    retry_backoff: float = 1.0
    extractor_timeout: float = 600.0
    metadata_timeout: float = 120.0
    yt_dlp_bin: str = field(default_factory=lambda: shutil.which("yt-dlp") or "yt-dlp")
    ffmpeg_bin: str | None = field(default_factory=lambda: shutil.which("ffmpeg"))
    cookies_path: str = ""
    audio_format: str = "mp3"
    audio_quality: str = "0"
    api_tokens: frozenset = frozenset()
    cors_origins: str = "*"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            work_dir=os.environ.get("YTMP3_WORK_DIR") or tempfile.gettempdir(),
            playlist_concurrency=_env_int("YTMP3_PLAYLIST_CONCURRENCY", 3, minimum=1),
            max_concurrent_jobs=_env_int("YTMP3_MAX_CONCURRENT_JOBS", 4, minimum=1),
            retry_attempts=_env_int("YTMP3_RETRY_ATTEMPTS", 3, minimum=1),
            retry_backoff=_env_float("YTMP3_RETRY_BACKOFF", 1.0),
            extractor_timeout=_env_float("YTMP3_EXTRACTOR_TIMEOUT", 600.0),
            metadata_timeout=_env_float("YTMP3_METADATA_TIMEOUT", 120.0),
            yt_dlp_bin=os.environ.get("YT_DLP_BIN") or shutil.which("yt-dlp") or "yt-dlp",
            ffmpeg_bin=os.environ.get("FFMPEG_BIN") or shutil.which("ffmpeg"),
            cookies_path=os.environ.get("YTMP3_COOKIES") or "",
            audio_format=(os.environ.get("YTMP3_AUDIO_FORMAT") or "mp3").strip().lower(),
            audio_quality=(os.environ.get("YTMP3_AUDIO_QUALITY") or "0").strip(),
            api_tokens=_env_list("YTMP3_API_TOKENS"),
            cors_origins=os.environ.get("YTMP3_CORS_ORIGINS") or "*",
            log_level=os.environ.get("YTMP3_LOG_LEVEL") or "INFO",
            host=os.environ.get("YTMP3_HOST") or "0.0.0.0",
            port=_env_int("YTMP3_PORT", 3000, minimum=1),
        )
