"""
Job lifecycle: admission, the per-kind pipelines and the terminal hook.

    created -> validating -> fetching_metadata -> downloading
            -> packaging (playlists) -> streaming -> done
    any non-terminal state -> failed

``finish`` is the only place a job ends. It removes the workspace and frees
the job slot, and it ignores repeated calls.
"""

import logging
import os
import threading
from dataclasses import dataclass

from ytmp3.archive import package_files
from ytmp3.downloader import download_all, with_retries
from ytmp3.errors import BusyError, MetadataError, NoOutputError, ValidationError
from ytmp3.models import Job, JobKind, JobState, JobStatus, ProgressEvent, WorkItem
from ytmp3.naming import (
    DEFAULT_PLAYLIST_TITLE,
    is_playlist_url,
    is_video_url,
    normalize_url,
    playlist_url,
    sanitize_filename,
    unique_filename,
)
from ytmp3.progress import NullProgressReporter, safe_publish
from ytmp3.workspace import create_workspace, destroy_workspace

logger = logging.getLogger(__name__)

AUDIO_CONTENT_TYPES = {
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
    "opus": "audio/ogg",
    "vorbis": "audio/ogg",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "wav": "audio/wav",
}
ZIP_CONTENT_TYPE = "application/zip"


@dataclass
class Delivery:
    job: Job
    path: str
    content_type: str
    filename: str
    failed_items: int = 0


class JobRunner:
    def __init__(self, settings, extractor, reporter=None):
        self.settings = settings
        self.extractor = extractor
        self.reporter = reporter or NullProgressReporter()
        self._slots = threading.BoundedSemaphore(settings.max_concurrent_jobs)
        self._lock = threading.Lock()
        self._jobs = {}

    @property
    def active_jobs(self) -> int:
        with self._lock:
            return len(self._jobs)

    def start(self, kind: JobKind, url: str, session_token: str | None = None) -> Job:
        if not self._slots.acquire(blocking=False):
            raise BusyError("Server busy, try again later")
        job = Job(kind=kind, url=(url or "").strip(), session_token=session_token or None)
        try:
            job.workspace = create_workspace(job.id, self.settings.work_dir)
        except Exception:
            job.state = JobState.FAILED
            job.status = JobStatus.FAILED
            self._slots.release()
            raise
        with self._lock:
            self._jobs[job.id] = job
        logger.info("Job %s (%s) started for %s", job.id, kind.value, job.url)
        return job

    def run(self, job: Job) -> Delivery:
        """Take a started job up to the point where its output is ready to stream."""
        try:
            job.transition(JobState.VALIDATING)
            if job.kind is JobKind.PLAYLIST:
                delivery = self._run_playlist(job)
            else:
                delivery = self._run_single(job)
            job.transition(JobState.STREAMING)
            return delivery
        except Exception as e:
            logger.warning("Job %s failed in state %s: %s", job.id, job.state.value, e)
            self.finish(job, ok=False)
            raise

    def finish(self, job: Job, ok: bool):
        with self._lock:
            if self._jobs.pop(job.id, None) is None:
                return
        if not ok:
            job.status = JobStatus.FAILED
            # lets progress listeners stop waiting for a 100% that will never come
            safe_publish(self.reporter, ProgressEvent(job.session_token, 100, job.title, error="Conversion failed"))
        if not job.finished:
            job.transition(JobState.DONE if ok else JobState.FAILED)
        if not destroy_workspace(job.workspace):
            logger.warning("Job %s left its workspace behind", job.id)
        self._slots.release()
        logger.info("Job %s finished: %s (%s)", job.id, job.state.value, job.status.value)

    def _run_single(self, job: Job) -> Delivery:
        if not is_video_url(job.url):
            raise ValidationError("Invalid YouTube URL")
        url = normalize_url(job.url)

        job.transition(JobState.FETCHING_METADATA)
        info = self.extractor.fetch_metadata(url, playlist=False)
        job.title = sanitize_filename(info.title)

        job.transition(JobState.DOWNLOADING)
        path, _ = with_retries(
            lambda: self.extractor.extract_audio(url, job.workspace, job.title),
            attempts=self.settings.retry_attempts,
            backoff=self.settings.retry_backoff,
            label=job.id,
        )
        safe_publish(self.reporter, ProgressEvent(job.session_token, 100, info.title or job.title))
        job.status = JobStatus.SUCCEEDED

        ext = os.path.splitext(path)[1].lstrip(".").lower() or self.settings.audio_format
        return Delivery(
            job=job,
            path=path,
            content_type=AUDIO_CONTENT_TYPES.get(ext, "application/octet-stream"),
            filename=f"{job.title}.{ext}",
        )

    def _run_playlist(self, job: Job) -> Delivery:
        if not is_playlist_url(job.url):
            raise ValidationError("Invalid YouTube playlist URL")

        job.transition(JobState.FETCHING_METADATA)
        info = self.extractor.fetch_metadata(playlist_url(job.url), playlist=True)
        if not info.entries:
            raise MetadataError("Playlist has no downloadable videos", empty=True)
        job.title = sanitize_filename(info.title, placeholder=DEFAULT_PLAYLIST_TITLE)

        taken = set()
        job.items = [
            WorkItem(
                video_id=entry.id,
                title=entry.title or entry.id,
                filename=unique_filename(sanitize_filename(entry.title), taken),
                position=position,
            )
            for position, entry in enumerate(info.entries)
        ]

        job.transition(JobState.DOWNLOADING)
        results = download_all(
            job.items,
            self.extractor,
            job.workspace,
            self.settings.playlist_concurrency,
            reporter=self.reporter,
            session_token=job.session_token,
            retry_attempts=self.settings.retry_attempts,
            retry_backoff=self.settings.retry_backoff,
        )
        succeeded = [r for r in results if r.ok]
        if not succeeded:
            raise NoOutputError("None of the playlist videos could be converted")
        job.status = JobStatus.PARTIAL if len(succeeded) < len(results) else JobStatus.SUCCEEDED

        job.transition(JobState.PACKAGING)
        # results are in playlist order, so the archive is too
        archive = package_files(job.workspace, [r.path for r in succeeded], f"{job.title}.zip")
        if archive.missing:
            job.status = JobStatus.PARTIAL
        return Delivery(
            job=job,
            path=archive.path,
            content_type=ZIP_CONTENT_TYPE,
            filename=f"{job.title}.zip",
            failed_items=len(results) - len(archive.entries),
        )
