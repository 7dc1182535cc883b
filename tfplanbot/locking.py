"""Locking of projects while they have runs in progress."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tfplanbot.models import Project, ProjectLock, PullRequest, User

# Matches {repoFullName}/{path}/{workspace}; path may contain slashes.
_KEY_RE = re.compile(r"(.*?/.*?)/(.*)/(.*)")


@dataclass(frozen=True)
class TryLockResponse:
    """Result of an attempt to lock."""

    lock_acquired: bool = False
    curr_lock: ProjectLock = field(default_factory=ProjectLock)
    lock_key: str = ""


class InvalidKeyError(ValueError):
    """Raised when a lock key cannot be parsed."""


def _key(project: Project, workspace: str) -> str:
    return f"{project.repo_full_name}/{project.path}/{workspace}"


def _parse_key(key: str) -> tuple[Project, str]:
    match = _KEY_RE.fullmatch(key)
    if match is None:
        raise InvalidKeyError("invalid key format")
    repo_full_name, path, workspace = match.groups()
    return Project(repo_full_name=repo_full_name, path=path), workspace


class LockingClient:
    """Performs locking actions against a storage backend.

    The backend provides try_lock(lock) -> (acquired, current_lock),
    unlock(project, workspace), list(), get_lock(project, workspace) and
    unlock_by_pull(repo_full_name, pull_num).
    """

    def __init__(self, backend: Any) -> None:
        self._backend = backend

    def try_lock(
        self, project: Project, workspace: str, pull: PullRequest, user: User
    ) -> TryLockResponse:
        """Try to lock project and workspace for the pull request."""
        lock = ProjectLock(
            project=project,
            pull=pull,
            user=user,
            workspace=workspace,
            time=datetime.now().astimezone(),
        )
        acquired, curr_lock = self._backend.try_lock(lock)
        return TryLockResponse(acquired, curr_lock, _key(project, workspace))

    def unlock(self, key: str) -> ProjectLock | None:
        """Delete the lock at key and return it, or None if there was none."""
        project, workspace = _parse_key(key)
        return self._backend.unlock(project, workspace)

    def list(self) -> dict[str, ProjectLock]:
        """Return all locks keyed by their lock key."""
        return {_key(lock.project, lock.workspace): lock for lock in self._backend.list()}

    def unlock_by_pull(self, repo_full_name: str, pull_num: int) -> list[ProjectLock]:
        """Delete every lock held by the pull request and return them."""
        return self._backend.unlock_by_pull(repo_full_name, pull_num)

    def get_lock(self, key: str) -> ProjectLock | None:
        """Return the lock at key, or None if there is none."""
        project, workspace = _parse_key(key)
        return self._backend.get_lock(project, workspace)