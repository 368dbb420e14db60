"""
Zip packaging of finished downloads.

Entries are named by basename and written in the order given. Audio is
already compressed so the deflate level mostly buys a little on tags and
padding; bytes are not reproducible across runs.
"""

import logging
import os
import zipfile
from dataclasses import dataclass, field

from ytmp3.errors import MissingFileError, PackagingError

logger = logging.getLogger(__name__)

COMPRESSION = zipfile.ZIP_DEFLATED
COMPRESSION_LEVEL = 9
ARCHIVE_DIR = ".archive"


@dataclass
class ArchiveResult:
    path: str
    entries: list = field(default_factory=list)  # arcnames, in write order
    missing: list = field(default_factory=list)  # MissingFileError per skipped entry


def package_files(workspace: str, file_paths, archive_name: str) -> ArchiveResult:
    """Write ``file_paths`` into ``<workspace>/.archive/<archive_name>``.

    A path that no longer exists is skipped and recorded; any write error
    aborts the whole archive and removes the partial file.
    """
    out_dir = os.path.join(workspace, ARCHIVE_DIR)
    result = ArchiveResult(path=os.path.join(out_dir, archive_name))
    used = set()
    try:
        os.makedirs(out_dir, exist_ok=True)
        with zipfile.ZipFile(result.path, "w", compression=COMPRESSION,
                             compresslevel=COMPRESSION_LEVEL) as zf:
            for fpath in file_paths:
                arcname = os.path.basename(fpath)
                if not os.path.isfile(fpath):
                    logger.warning("Skipping %s: file disappeared before packaging", arcname)
                    result.missing.append(MissingFileError(fpath))
                    continue
                if arcname in used:
                    logger.warning("Skipping duplicate archive entry %s", arcname)
                    continue
                try:
                    zf.write(fpath, arcname)
                except FileNotFoundError:
                    result.missing.append(MissingFileError(fpath))
                    continue
                used.add(arcname)
                result.entries.append(arcname)
    except (OSError, zipfile.LargeZipFile) as e:
        logger.error("Packaging %s failed: %s", result.path, e)
        _discard(result.path)
        raise PackagingError("Could not build the archive") from e
    if not result.entries:
        _discard(result.path)
        raise PackagingError("Nothing left to archive")
    logger.info("Packaged %d file(s) into %s", len(result.entries), archive_name)
    return result


def _discard(path: str):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial archive %s: %s", path, e)
