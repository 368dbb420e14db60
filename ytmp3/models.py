import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class JobKind(str, Enum):
    SINGLE = "single"
    PLAYLIST = "playlist"


class JobStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


class JobState(str, Enum):
    CREATED = "created"
    VALIDATING = "validating"
    FETCHING_METADATA = "fetching_metadata"
    DOWNLOADING = "downloading"
    PACKAGING = "packaging"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({JobState.DONE, JobState.FAILED})


class ItemOutcome(str, Enum):
    NOT_STARTED = "not_started"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class MediaEntry:
    id: str
    title: str


@dataclass
class MediaInfo:
    title: str
    entries: list = field(default_factory=list)  # list[MediaEntry]; empty for a single video


@dataclass
class WorkItem:
    video_id: str
    title: str
    filename: str
    position: int = 0
    outcome: ItemOutcome = ItemOutcome.NOT_STARTED


@dataclass
class WorkItemResult:
    item: WorkItem
    path: str | None = None
    error: Exception | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.path is not None and self.error is None


@dataclass(frozen=True)
class ProgressEvent:
    session_token: str | None
    percent_complete: int
    current_item_label: str | None = None
    error: str | None = None

    @property
    def final(self) -> bool:
        return self.error is not None or self.percent_complete >= 100

    def to_payload(self) -> dict:
        payload = {"progress": self.percent_complete}
        if self.current_item_label:
            payload["current"] = self.current_item_label
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class Job:
    kind: JobKind
    url: str
    session_token: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    workspace: str | None = None
    status: JobStatus = JobStatus.PENDING
    state: JobState = JobState.CREATED
    title: str | None = None
    items: list = field(default_factory=list)  # list[WorkItem], playlist order

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, state: JobState):
        if self.finished:
            raise RuntimeError(f"job {self.id} already {self.state.value}")
        logger.debug("job %s: %s -> %s", self.id, self.state.value, state.value)
        self.state = state
