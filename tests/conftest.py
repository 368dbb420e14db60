import os
import sys
import threading
import time
from pathlib import Path

import pytest

# Ensure tests can import the package regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from ytmp3.config import Settings  # noqa: E402
from ytmp3.errors import ExtractionError  # noqa: E402
from ytmp3.models import MediaEntry, MediaInfo  # noqa: E402

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
PLAYLIST_URL = "https://www.youtube.com/playlist?list=PLabcdef123456"


class FakeExtractor:
    """Stands in for yt-dlp: writes a small file per extraction and records concurrency."""

    def __init__(self, info=None, fail_ids=(), delays=None, flaky=None, metadata_error=None, payload_size=4096):
        self.info = info or MediaInfo(title="Never Gonna Give You Up")
        self.fail_ids = set(fail_ids)
        self.delays = dict(delays or {})
        self.flaky = dict(flaky or {})  # video id -> failures before success
        self.metadata_error = metadata_error
        self.payload_size = payload_size
        self.metadata_calls = []
        self.extract_calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    @property
    def calls(self):
        return len(self.metadata_calls) + len(self.extract_calls)

    def fetch_metadata(self, url, playlist=False):
        self.metadata_calls.append((url, playlist))
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.info

    def extract_audio(self, url, dest_dir, basename):
        video_id = url.rsplit("=", 1)[-1]
        with self._lock:
            self.extract_calls.append(video_id)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delays.get(video_id, self.delays.get("*", 0)))
            if video_id in self.fail_ids:
                raise ExtractionError(f"cannot fetch {video_id}")
            with self._lock:
                remaining = self.flaky.get(video_id, 0)
                if remaining:
                    self.flaky[video_id] = remaining - 1
            if remaining:
                raise ExtractionError(f"transient failure for {video_id}")
            path = os.path.join(dest_dir, f"{basename}.mp3")
            with open(path, "wb") as f:
                f.write(b"ID3" + (video_id.encode() * self.payload_size)[:self.payload_size])
            return path
        finally:
            with self._lock:
                self.in_flight -= 1


class RecordingReporter:
    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def publish(self, event):
        with self._lock:
            self.events.append(event)


def playlist_info(n=5, title="My Mix"):
    return MediaInfo(title=title, entries=[MediaEntry(id=f"vid{i:08d}", title=f"Track {i}") for i in range(n)])


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def settings(work_dir):
    return Settings(
        work_dir=str(work_dir),
        playlist_concurrency=2,
        max_concurrent_jobs=4,
        retry_attempts=1,
        retry_backoff=0.0,
        yt_dlp_bin="yt-dlp",
        ffmpeg_bin=None,
    )
