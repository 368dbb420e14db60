"""
Bounded concurrent extraction of playlist items.

Items are submitted to a fixed-size worker pool in input order, so at most
``concurrency_limit`` extractor processes run at once. A failing item never
affects its siblings; the caller gets one result per item and decides what a
partial batch means.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from ytmp3.errors import ExtractionError
from ytmp3.models import ItemOutcome, ProgressEvent, WorkItemResult
from ytmp3.naming import video_url
from ytmp3.progress import safe_publish

logger = logging.getLogger(__name__)


def with_retries(func, attempts: int = 1, backoff: float = 0.0, label: str = ""):
    """Call ``func()`` up to ``attempts`` times on ExtractionError, sleeping backoff, 2*backoff, ...

    Returns ``(value, attempts_used)``; the last ExtractionError is re-raised.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func(), attempt
        except ExtractionError as e:
            if attempt == attempts:
                raise
            delay = backoff * (2 ** (attempt - 1))
            logger.info("Attempt %d/%d failed for %s (%s), retrying in %.1fs",
                        attempt, attempts, label, e, delay)
            if delay:
                time.sleep(delay)


class _Progress:
    """Settled-item counter; percentages only ever grow.

    Percentages use Python's round(), which rounds halves to even: eight
    items report 12, 25, 38, 50, 62, 75, 88, 100.
    """

    def __init__(self, total: int, reporter, session_token):
        self.total = total
        self.settled = 0
        self.reporter = reporter
        self.session_token = session_token
        self._lock = threading.Lock()

    def settle(self, label: str):
        # publish under the lock so events leave in counter order
        with self._lock:
            self.settled += 1
            pct = round(100 * self.settled / self.total)
            safe_publish(self.reporter, ProgressEvent(self.session_token, pct, label))


def _download_one(item, extractor, workspace, retry_attempts, retry_backoff) -> WorkItemResult:
    result = WorkItemResult(item=item)
    url = video_url(item.video_id)
    try:
        result.path, result.attempts = with_retries(
            lambda: extractor.extract_audio(url, workspace, item.filename),
            attempts=retry_attempts, backoff=retry_backoff, label=item.video_id,
        )
    except ExtractionError as e:
        result.error = e
        result.attempts = max(1, retry_attempts)
        logger.warning("Giving up on %s (%s): %s", item.video_id, item.title, e)
    except Exception as e:
        result.error = e
        result.attempts = result.attempts or 1
        logger.exception("Unexpected failure downloading %s", item.video_id)
    item.outcome = ItemOutcome.SUCCESS if result.ok else ItemOutcome.FAILURE
    return result


def download_all(items, extractor, workspace: str, concurrency_limit: int,
                 reporter=None, session_token: str | None = None,
                 retry_attempts: int = 1, retry_backoff: float = 0.0) -> list:
    """Run the extractor once per item; results come back in input order."""
    if concurrency_limit < 1:
        raise ValueError("concurrency_limit must be >= 1")
    items = list(items)
    if not items:
        return []

    progress = _Progress(len(items), reporter, session_token)

    def task(item):
        try:
            return _download_one(item, extractor, workspace, retry_attempts, retry_backoff)
        finally:
            progress.settle(item.title)

    workers = min(concurrency_limit, len(items))
    logger.info("Downloading %d item(s) with up to %d in parallel", len(items), workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ytmp3-dl") as pool:
        futures = [pool.submit(task, item) for item in items]
        results = [f.result() for f in futures]

    ok = sum(1 for r in results if r.ok)
    logger.info("Downloads settled: %d ok, %d failed", ok, len(results) - ok)
    return results
