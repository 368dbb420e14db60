import os

import pytest

from ytmp3.errors import FilesystemError
from ytmp3.workspace import WORKSPACE_PREFIX, create_workspace, destroy_workspace


def test_workspaces_are_unique_per_job(work_dir) -> None:
    first = create_workspace("job1", str(work_dir))
    second = create_workspace("job2", str(work_dir))

    assert first != second
    assert os.path.isdir(first) and os.path.isdir(second)
    assert os.path.basename(first).startswith(f"{WORKSPACE_PREFIX}job1_")


def test_destroy_removes_contents(work_dir) -> None:
    path = create_workspace("job", str(work_dir))
    os.makedirs(os.path.join(path, "nested"))
    with open(os.path.join(path, "nested", "a.mp3"), "wb") as f:
        f.write(b"data")

    assert destroy_workspace(path) is True
    assert not os.path.exists(path)


def test_destroy_is_idempotent(work_dir) -> None:
    path = create_workspace("job", str(work_dir))
    assert destroy_workspace(path) is True
    assert destroy_workspace(path) is True
    assert destroy_workspace(None) is True
    assert destroy_workspace(str(work_dir / "never-existed")) is True


def test_create_failure_raises_filesystem_error(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")

    with pytest.raises(FilesystemError) as excinfo:
        create_workspace("job", str(blocker))
    assert str(blocker) not in excinfo.value.message


def test_destroy_failure_only_warns(work_dir, monkeypatch) -> None:
    path = create_workspace("job", str(work_dir))

    def _boom(_path):
        raise PermissionError("denied")

    monkeypatch.setattr("ytmp3.workspace.shutil.rmtree", _boom)
    assert destroy_workspace(path) is False
