"""A locking backend that keeps locks in an SQLite database file."""

from __future__ import annotations

import json
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any

from tfplanbot.models import Project, ProjectLock, PullRequest, PullRequestState, User

_BUCKET_NAME = "runLocks"
_DB_FILE = "atlantis.db"

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS locks ("
    " bucket TEXT NOT NULL,"
    " key TEXT NOT NULL,"
    " value TEXT NOT NULL,"
    " PRIMARY KEY (bucket, key))"
)


class LockDBError(Exception):
    """Raised when the lock database cannot be read or written."""


class _DecodeError(ValueError):
    pass


def _key(project: Project, workspace: str) -> str:
    return f"{project.repo_full_name}/{project.path}/{workspace}"


def _dumps(lock: ProjectLock) -> str:
    return json.dumps(
        {
            "project": {
                "repo_full_name": lock.project.repo_full_name,
                "path": lock.project.path,
            },
            "pull": {
                "num": lock.pull.num,
                "head_commit": lock.pull.head_commit,
                "url": lock.pull.url,
                "branch": lock.pull.branch,
                "author": lock.pull.author,
                "state": lock.pull.state.value,
            },
            "user": {"username": lock.user.username},
            "workspace": lock.workspace,
            "time": lock.time.isoformat() if lock.time is not None else None,
        }
    )


def _loads(raw: str) -> ProjectLock:
    try:
        data: dict[str, Any] = json.loads(raw)
        project = data.get("project", {})
        pull = data.get("pull", {})
        user = data.get("user", {})
        time = data.get("time")
        return ProjectLock(
            project=Project(
                repo_full_name=project.get("repo_full_name", ""),
                path=project.get("path", ""),
            ),
            pull=PullRequest(
                num=pull.get("num", 0),
                head_commit=pull.get("head_commit", ""),
                url=pull.get("url", ""),
                branch=pull.get("branch", ""),
                author=pull.get("author", ""),
                state=PullRequestState(pull.get("state", 0)),
            ),
            user=User(username=user.get("username", "")),
            workspace=data.get("workspace", ""),
            time=datetime.fromisoformat(time) if time is not None else None,
        )
    except (ValueError, TypeError, AttributeError) as err:
        raise _DecodeError(str(err)) from err


class SQLiteLocker:
    """Stores project locks in one bucket of an SQLite database."""

    def __init__(self, path: str, bucket: str = _BUCKET_NAME) -> None:
        self._bucket = bucket
        try:
            self._conn = sqlite3.connect(path, timeout=1.0, isolation_level=None)
            self._conn.execute(_SCHEMA)
        except sqlite3.OperationalError as err:
            if "locked" in str(err):
                raise LockDBError(
                    "starting database: timeout (a possible cause is another "
                    "Atlantis instance already running)"
                ) from err
            raise LockDBError(f"starting database: {err}") from err

    def __enter__(self) -> SQLiteLocker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database."""
        self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")
        except sqlite3.Error as err:
            raise LockDBError(f"DB transaction failed: {err}") from err

    def _get(self, conn: sqlite3.Connection, key: str) -> str | None:
        row = conn.execute(
            "SELECT value FROM locks WHERE bucket = ? AND key = ?", (self._bucket, key)
        ).fetchone()
        return row[0] if row is not None else None

    def try_lock(self, new_lock: ProjectLock) -> tuple[bool, ProjectLock]:
        """Create the lock if free; return (acquired, lock now holding the key)."""
        key = _key(new_lock.project, new_lock.workspace)
        with self._transaction() as conn:
            current = self._get(conn, key)
            if current is None:
                conn.execute(
                    "INSERT INTO locks (bucket, key, value) VALUES (?, ?, ?)",
                    (self._bucket, key, _dumps(new_lock)),
                )
                return True, new_lock
            try:
                return False, _loads(current)
            except _DecodeError as err:
                raise LockDBError(
                    f"DB transaction failed: failed to deserialize current lock: {err}"
                ) from err

    def unlock(self, project: Project, workspace: str) -> ProjectLock | None:
        """Delete the lock and return it, or None if there was no lock."""
        key = _key(project, workspace)
        with self._transaction() as conn:
            current = self._get(conn, key)
            lock = None
            if current is not None:
                try:
                    lock = _loads(current)
                except _DecodeError as err:
                    raise LockDBError(
                        f"DB transaction failed: failed to deserialize lock: {err}"
                    ) from err
            conn.execute("DELETE FROM locks WHERE bucket = ? AND key = ?", (self._bucket, key))
        return lock

    def list(self) -> list[ProjectLock]:
        """Return all current locks ordered by key."""
        try:
            rows = self._conn.execute(
                "SELECT key, value FROM locks WHERE bucket = ? ORDER BY key", (self._bucket,)
            ).fetchall()
        except sqlite3.Error as err:
            raise LockDBError(f"DB transaction failed: {err}") from err
        locks = []
        for key, value in rows:
            try:
                locks.append(_loads(value))
            except _DecodeError as err:
                raise LockDBError(f"failed to deserialize lock at key {key!r}: {err}") from err
        return locks

    def unlock_by_pull(self, repo_full_name: str, pull_num: int) -> list[ProjectLock]:
        """Delete every lock in the repo held by the pull request and return them."""
        try:
            rows = self._conn.execute(
                "SELECT key, value FROM locks WHERE bucket = ? AND key >= ? ORDER BY key",
                (self._bucket, repo_full_name),
            ).fetchall()
        except sqlite3.Error as err:
            raise LockDBError(f"DB transaction failed: {err}") from err

        locks = []
        # Keys begin with the repo name, so the matching keys are contiguous.
        for key, value in rows:
            if not key.startswith(repo_full_name):
                break
            try:
                lock = _loads(value)
            except _DecodeError as err:
                raise LockDBError(f"deserializing lock at key {key!r}: {err}") from err
            if lock.pull.num == pull_num:
                locks.append(lock)

        for lock in locks:
            try:
                self.unlock(lock.project, lock.workspace)
            except LockDBError as err:
                raise LockDBError(
                    f"unlocking repo {lock.project.repo_full_name}, path {lock.project.path}, "
                    f"workspace {lock.workspace}: {err}"
                ) from err
        return locks

    def get_lock(self, project: Project, workspace: str) -> ProjectLock | None:
        """Return the lock for the project and workspace, or None."""
        key = _key(project, workspace)
        try:
            raw = self._get(self._conn, key)
        except sqlite3.Error as err:
            raise LockDBError(f"getting lock data: {err}") from err
        if raw is None:
            return None
        try:
            lock = _loads(raw)
        except _DecodeError as err:
            raise LockDBError(f"deserializing lock at key {key!r}: {err}") from err
        if lock.time is not None:
            lock = replace(lock, time=lock.time.astimezone())
        return lock


def open_locker(data_dir: str) -> SQLiteLocker:
    """Open the lock database in data_dir, creating the directory if needed."""
    try:
        os.makedirs(data_dir, mode=0o700, exist_ok=True)
    except OSError as err:
        raise LockDBError(f"creating data dir: {err}") from err
    return SQLiteLocker(os.path.join(data_dir, _DB_FILE), _BUCKET_NAME)