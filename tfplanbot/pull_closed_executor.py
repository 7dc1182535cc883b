"""Cleaning up after a pull request is closed or merged."""

from __future__ import annotations

from typing import Any

from tfplanbot.models import ProjectLock, PullRequest, Repo
from tfplanbot.vcs import Host

_HEADER = "Locks and plans deleted for the projects and workspaces modified in this pull request:\n"


class CleanUpError(Exception):
    """Raised when the workspace or locks of a pull request cannot be cleaned up."""


def _render_comment(locks: list[ProjectLock]) -> str:
    workspaces_by_path: dict[str, list[str]] = {}
    for lock in locks:
        path = f"{lock.project.repo_full_name}/{lock.project.path}"
        workspaces_by_path.setdefault(path, []).append(lock.workspace)

    entries = []
    for path in sorted(workspaces_by_path):
        workspaces = workspaces_by_path[path]
        label = "workspace" if len(workspaces) == 1 else "workspaces"
        joined = "`, `".join(workspaces)
        entries.append(f"\n- path: `{path}` {label}: `{joined}`")
    return _HEADER + "".join(entries)


class PullClosedExecutor:
    """Deletes the workspaces and locks of a closed pull request."""

    def __init__(self, locker: Any = None, vcs_client: Any = None, workspace: Any = None) -> None:
        self.locker = locker
        self.vcs_client = vcs_client
        self.workspace = workspace

    def clean_up_pull(self, repo: Repo, pull: PullRequest, host: Host) -> None:
        """Delete the pull request's workspaces and locks, then comment on what went."""
        try:
            self.workspace.delete(repo, pull)
        except Exception as err:
            raise CleanUpError(f"cleaning workspace: {err}") from err

        # Locks go last: unlocking does not delete plans, so plans may be
        # left lying around without locks but never the other way round.
        try:
            locks = self.locker.unlock_by_pull(repo.full_name, pull.num)
        except Exception as err:
            raise CleanUpError(f"cleaning up locks: {err}") from err

        if not locks:
            return
        self.vcs_client.create_comment(repo, pull, _render_comment(list(locks)), host)