import tempfile

from ytmp3.config import Settings


def test_defaults_from_empty_env(monkeypatch) -> None:
    for name in ("YTMP3_WORK_DIR", "YTMP3_PLAYLIST_CONCURRENCY", "YTMP3_API_TOKENS", "YTMP3_RETRY_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.work_dir == tempfile.gettempdir()
    assert settings.playlist_concurrency == 3
    assert settings.retry_attempts == 3
    assert settings.api_tokens == frozenset()
    assert settings.audio_format == "mp3"


def test_values_read_from_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("YTMP3_WORK_DIR", str(tmp_path))
    monkeypatch.setenv("YTMP3_PLAYLIST_CONCURRENCY", "5")
    monkeypatch.setenv("YTMP3_RETRY_BACKOFF", "0.25")
    monkeypatch.setenv("YTMP3_API_TOKENS", "abc, def ,,")
    monkeypatch.setenv("YT_DLP_BIN", "/opt/bin/yt-dlp")

    settings = Settings.from_env()

    assert settings.work_dir == str(tmp_path)
    assert settings.playlist_concurrency == 5
    assert settings.retry_backoff == 0.25
    assert settings.api_tokens == frozenset({"abc", "def"})
    assert settings.yt_dlp_bin == "/opt/bin/yt-dlp"


def test_invalid_numbers_fall_back(monkeypatch) -> None:
    monkeypatch.setenv("YTMP3_PLAYLIST_CONCURRENCY", "lots")
    monkeypatch.setenv("YTMP3_MAX_CONCURRENT_JOBS", "0")
    monkeypatch.setenv("YTMP3_RETRY_BACKOFF", "soon")

    settings = Settings.from_env()

    assert settings.playlist_concurrency == 3
    assert settings.max_concurrent_jobs == 1
    assert settings.retry_backoff == 1.0
