"""
Thin wrapper around the yt-dlp executable.

Two modes are used: a metadata dump (one JSON document for a video or a flat
playlist) and audio extraction into a given directory. Anything other than a
clean exit with the expected output is a failure of that invocation.
"""

import json
import logging
import os
import subprocess

from ytmp3.errors import ExtractionError, MetadataError, NoOutputError
from ytmp3.models import MediaEntry, MediaInfo

logger = logging.getLogger(__name__)

_STDERR_TAIL = 2000


class Extractor:
    def __init__(self, settings):
        self.settings = settings

    def _base_cmd(self) -> list:
        cmd = [self.settings.yt_dlp_bin]
        if self.settings.ffmpeg_bin:
            cmd += ["--ffmpeg-location", self.settings.ffmpeg_bin]
        cookies = self.settings.cookies_path
        if cookies and os.path.exists(cookies):
            cmd += ["--cookies", cookies]
        return cmd + ["--no-warnings", "--no-progress"]

    def _run(self, cmd: list, timeout: float, error_cls):
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except FileNotFoundError as e:
            logger.error("yt-dlp binary not found: %s", cmd[0])
            raise error_cls("Extractor is not available") from e
        except subprocess.TimeoutExpired as e:
            logger.warning("yt-dlp timed out after %ss: %s", timeout, cmd[-1])
            raise error_cls("Extractor timed out") from e
        if proc.returncode != 0:
            logger.warning("yt-dlp exited %s for %s: %s",
                           proc.returncode, cmd[-1], (proc.stderr or "").strip()[-_STDERR_TAIL:])
            raise error_cls(f"Extractor failed (exit code {proc.returncode})")
        return proc

    def fetch_metadata(self, url: str, playlist: bool = False) -> MediaInfo:
        cmd = self._base_cmd() + ["--dump-single-json", "--flat-playlist"]
        if not playlist:
            cmd.append("--no-playlist")
        cmd.append(url)
        proc = self._run(cmd, self.settings.metadata_timeout, MetadataError)
        try:
            data = json.loads(proc.stdout)
        except ValueError as e:
            logger.warning("Unparsable metadata for %s: %r", url, (proc.stdout or "")[:200])
            raise MetadataError("Extractor returned unreadable metadata") from e
        if not isinstance(data, dict):
            raise MetadataError("Extractor returned unreadable metadata")
        return parse_metadata(data)

    def extract_audio(self, url: str, dest_dir: str, basename: str) -> str:
        fmt = self.settings.audio_format
        expected = os.path.join(dest_dir, f"{basename}.{fmt}")
        cmd = self._base_cmd() + [
            "-f", "bestaudio/best",
            "--extract-audio",
            "--audio-format", fmt,
            "--audio-quality", self.settings.audio_quality,
            "--no-playlist",
            "--print", "after_move:filepath",
            "-o", os.path.join(dest_dir, f"{basename}.%(ext)s"),
            url,
        ]
        proc = self._run(cmd, self.settings.extractor_timeout, ExtractionError)
        printed = [line.strip() for line in (proc.stdout or "").splitlines() if os.path.isabs(line.strip())]
        for path in reversed(printed):
            if os.path.isfile(path):
                return path
        if os.path.isfile(expected):
            return expected
        logger.warning("yt-dlp finished for %s but %s is missing", url, expected)
        raise NoOutputError("Extraction produced no audio file")


def parse_metadata(data: dict) -> MediaInfo:
    entries = []
    for raw in data.get("entries") or []:
        # unavailable videos come back as null entries or without an id
        if not isinstance(raw, dict) or not raw.get("id"):
            continue
        entries.append(MediaEntry(id=str(raw["id"]), title=str(raw.get("title") or "")))
    return MediaInfo(title=str(data.get("title") or ""), entries=entries)
