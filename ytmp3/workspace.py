"""
Per-job scratch directories.

Every job gets its own directory under the configured work dir. Removal goes
through ``destroy_workspace`` on every exit path and is safe to repeat.
"""

import logging
import os
import shutil
import tempfile

from ytmp3.errors import FilesystemError

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "ytmp3_"


def create_workspace(job_id: str, root: str | None = None) -> str:
    root = root or tempfile.gettempdir()
    try:
        os.makedirs(root, exist_ok=True)
        path = tempfile.mkdtemp(prefix=f"{WORKSPACE_PREFIX}{job_id}_", dir=root)
    except OSError as e:
        logger.error("Could not create workspace for job %s under %s: %s", job_id, root, e)
        raise FilesystemError("Could not allocate working space") from e
    logger.debug("Workspace for job %s: %s", job_id, path)
    return path


def destroy_workspace(path: str | None) -> bool:
    """Remove ``path`` and everything below it. Returns False only if removal failed."""
    if not path or not os.path.lexists(path):
        return True
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Failed to remove workspace %s: %s", path, e)
        return False
    logger.debug("Removed workspace %s", path)
    return True
