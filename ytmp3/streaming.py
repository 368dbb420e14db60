"""
Chunked file responses with a guaranteed close hook.

The body is read lazily in fixed-size chunks. ``on_close`` fires once: when
the generator runs out (full send or read error), when the client disconnects,
or via ``Response.call_on_close`` when the body was never iterated at all.
"""

import logging
import os
import threading

from flask import Response

from ytmp3.naming import content_disposition

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def _iter_file(path: str, label: str, state: dict, settled):
    sent = 0
    try:
        with open(path, "rb") as f:
            while True:
                try:
                    chunk = f.read(CHUNK_SIZE)
                except OSError as e:
                    # headers are already out, the status can no longer change
                    state["error"] = e
                    logger.error("Read failed while streaming %s after %d bytes: %s", label, sent, e)
                    return
                if not chunk:
                    state["complete"] = True
                    return
                sent += len(chunk)
                yield chunk
    except OSError as e:
        state["error"] = e
        logger.error("Could not open %s for streaming: %s", label, e)
    except GeneratorExit:
        logger.info("Client went away while streaming %s after %d bytes", label, sent)
        raise
    finally:
        state["sent"] = sent
        settled()


def stream_file(path: str, content_type: str, filename: str, on_close=None) -> Response:
    """Stream ``path`` as an attachment named ``filename``.

    ``on_close(complete)`` runs exactly once, as soon as the body is exhausted
    or the response is closed, whichever comes first. ``complete`` is True only
    if every byte was handed to the server.
    """
    state = {"complete": False, "error": None, "sent": 0, "settled": False}
    lock = threading.Lock()

    def settled():
        with lock:
            if state["settled"]:
                return
            state["settled"] = True
        if on_close is not None:
            on_close(state["complete"] and state["error"] is None)

    response = Response(_iter_file(path, filename, state, settled), mimetype=content_type)
    response.headers["Content-Disposition"] = content_disposition(filename)
    try:
        response.headers["Content-Length"] = str(os.path.getsize(path))
    except OSError:
        pass
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    # covers bodies that were never iterated
    response.call_on_close(settled)
    return response
