from datetime import datetime
from unittest.mock import Mock

import pytest

from tfplanbot.locking import InvalidKeyError, LockingClient, TryLockResponse
from tfplanbot.models import Project, ProjectLock, PullRequest, User, new_project

PROJECT = new_project("owner/repo", "path")
WORKSPACE = "workspace"
PULL = PullRequest()
USER = User()
PL = ProjectLock(
    project=PROJECT, pull=PULL, user=USER, workspace=WORKSPACE, time=datetime.now().astimezone()
)


class BackendError(Exception):
    pass


def test_try_lock_error_propagates():
    backend = Mock()
    backend.try_lock.side_effect = BackendError("err")
    client = LockingClient(backend)
    with pytest.raises(BackendError, match="err"):
        client.try_lock(PROJECT, WORKSPACE, PULL, USER)


def test_try_lock_success():
    curr = ProjectLock()
    backend = Mock()
    backend.try_lock.return_value = (True, curr)
    client = LockingClient(backend)
    response = client.try_lock(PROJECT, WORKSPACE, PULL, USER)
    assert response == TryLockResponse(
        lock_acquired=True, curr_lock=curr, lock_key="owner/repo/path/workspace"
    )
    sent = backend.try_lock.call_args.args[0]
    assert sent.project == PROJECT
    assert sent.workspace == WORKSPACE
    assert sent.time is not None and sent.time.tzinfo is not None


def test_unlock_invalid_key():
    client = LockingClient(Mock())
    with pytest.raises(InvalidKeyError, match="invalid key format"):
        client.unlock("invalidkey")


def test_unlock_error_propagates():
    backend = Mock()
    backend.unlock.side_effect = BackendError("err")
    client = LockingClient(backend)
    with pytest.raises(BackendError):
        client.unlock("owner/repo/path/workspace")
    backend.unlock.assert_called_once_with(PROJECT, "workspace")


def test_unlock():
    backend = Mock()
    backend.unlock.return_value = PL
    client = LockingClient(backend)
    assert client.unlock("owner/repo/path/workspace") == PL


def test_unlock_key_with_nested_path():
    backend = Mock()
    backend.unlock.return_value = None
    client = LockingClient(backend)
    assert client.unlock("owner/repo/parent/child/default") is None
    backend.unlock.assert_called_once_with(Project("owner/repo", "parent/child"), "default")


def test_list_error_propagates():
    backend = Mock()
    backend.list.side_effect = BackendError("err")
    with pytest.raises(BackendError, match="err"):
        LockingClient(backend).list()


def test_list():
    backend = Mock()
    backend.list.return_value = [PL]
    assert LockingClient(backend).list() == {"owner/repo/path/workspace": PL}


def test_unlock_by_pull_error_propagates():
    backend = Mock()
    backend.unlock_by_pull.side_effect = BackendError("err")
    with pytest.raises(BackendError, match="err"):
        LockingClient(backend).unlock_by_pull("owner/repo", 1)
    backend.unlock_by_pull.assert_called_once_with("owner/repo", 1)


def test_get_lock_bad_key():
    with pytest.raises(InvalidKeyError, match="invalid key format"):
        LockingClient(Mock()).get_lock("invalidkey")


def test_get_lock_error_propagates():
    backend = Mock()
    backend.get_lock.side_effect = BackendError("err")
    with pytest.raises(BackendError, match="err"):
        LockingClient(backend).get_lock("owner/repo/path/workspace")
    backend.get_lock.assert_called_once_with(PROJECT, WORKSPACE)


def test_get_lock():
    backend = Mock()
    backend.get_lock.return_value = PL
    assert LockingClient(backend).get_lock("owner/repo/path/workspace") == PL