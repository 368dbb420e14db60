import os
import zipfile

import pytest

from ytmp3.archive import ARCHIVE_DIR, package_files
from ytmp3.errors import MissingFileError, PackagingError


def _write(directory, name, content=b"ID3 audio"):
    path = directory / name
    path.write_bytes(content)
    return str(path)


def test_entries_use_basenames_in_input_order(work_dir) -> None:
    nested = work_dir / "deep" / "er"
    nested.mkdir(parents=True)
    paths = [_write(work_dir, "b.mp3"), _write(nested, "a.mp3"), _write(work_dir, "c.mp3")]

    result = package_files(str(work_dir), paths, "mix.zip")

    assert result.path == os.path.join(str(work_dir), ARCHIVE_DIR, "mix.zip")
    assert result.entries == ["b.mp3", "a.mp3", "c.mp3"]
    with zipfile.ZipFile(result.path) as zf:
        assert zf.namelist() == ["b.mp3", "a.mp3", "c.mp3"]
        assert zf.read("a.mp3") == b"ID3 audio"
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())


def test_missing_file_is_skipped_not_fatal(work_dir) -> None:
    paths = [_write(work_dir, "one.mp3"), str(work_dir / "gone.mp3"), _write(work_dir, "two.mp3")]

    result = package_files(str(work_dir), paths, "mix.zip")

    assert result.entries == ["one.mp3", "two.mp3"]
    assert len(result.missing) == 1
    assert isinstance(result.missing[0], MissingFileError)
    assert result.missing[0].path.endswith("gone.mp3")


def test_nothing_to_package_fails(work_dir) -> None:
    with pytest.raises(PackagingError):
        package_files(str(work_dir), [str(work_dir / "gone.mp3")], "mix.zip")
    assert not os.path.exists(os.path.join(str(work_dir), ARCHIVE_DIR, "mix.zip"))


def test_write_error_aborts_and_discards_partial_archive(work_dir, monkeypatch) -> None:
    paths = [_write(work_dir, "one.mp3"), _write(work_dir, "two.mp3")]
    real_write = zipfile.ZipFile.write

    def failing_write(self, filename, arcname=None, *args, **kwargs):
        if arcname == "two.mp3":
            raise OSError(28, "No space left on device")
        return real_write(self, filename, arcname, *args, **kwargs)

    monkeypatch.setattr(zipfile.ZipFile, "write", failing_write)

    with pytest.raises(PackagingError):
        package_files(str(work_dir), paths, "mix.zip")
    assert not os.path.exists(os.path.join(str(work_dir), ARCHIVE_DIR, "mix.zip"))
