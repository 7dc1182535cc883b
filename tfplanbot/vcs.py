"""VCS hosts, commit statuses and a proxy that routes calls to the right host client."""

from __future__ import annotations

import enum
from typing import Any, NoReturn

from tfplanbot.models import PullRequest, Repo


class Host(enum.Enum):
    """A supported VCS host."""

    GITHUB = 0
    GITLAB = 1

    def __str__(self) -> str:
        return {Host.GITHUB: "Github", Host.GITLAB: "Gitlab"}[self]


class CommitStatus(enum.Enum):
    """Result of running a command for a commit."""

    PENDING = 0
    SUCCESS = 1
    FAILED = 2

    def __str__(self) -> str:
        return self.name.lower()


class VCSError(Exception):
    """Raised when a VCS call cannot be made."""


class NotConfiguredVCSClient:
    """Stands in for a host that was not configured; every call raises."""

    def __init__(self, host: Host = Host.GITHUB) -> None:
        self.host = host

    def _reject(self) -> NoReturn:
        raise VCSError(f"Atlantis was not configured to support repos from {self.host}")

    def get_modified_files(self, repo: Repo, pull: PullRequest) -> list[str]:
        """Raise VCSError: the host is not configured."""
        return self._reject()

    def create_comment(self, repo: Repo, pull: PullRequest, comment: str) -> None:
        """Raise VCSError: the host is not configured."""
        return self._reject()

    def pull_is_approved(self, repo: Repo, pull: PullRequest) -> bool:
        """Raise VCSError: the host is not configured."""
        return self._reject()

    def update_status(
        self, repo: Repo, pull: PullRequest, state: CommitStatus, description: str
    ) -> None:
        """Raise VCSError: the host is not configured."""
        return self._reject()


class DefaultClientProxy:
    """Routes each call to the client for the requested host."""

    def __init__(self, github_client: Any = None, gitlab_client: Any = None) -> None:
        self.github_client = (
            github_client if github_client is not None else NotConfiguredVCSClient(Host.GITHUB)
        )
        self.gitlab_client = (
            gitlab_client if gitlab_client is not None else NotConfiguredVCSClient(Host.GITLAB)
        )

    def _client(self, host: Host) -> Any:
        if host is Host.GITHUB:
            return self.github_client
        if host is Host.GITLAB:
            return self.gitlab_client
        raise VCSError("Invalid VCS Host. This is a bug!")

    def get_modified_files(self, repo: Repo, pull: PullRequest, host: Host) -> list[str]:
        return self._client(host).get_modified_files(repo, pull)

    def create_comment(self, repo: Repo, pull: PullRequest, comment: str, host: Host) -> None:
        self._client(host).create_comment(repo, pull, comment)

    def pull_is_approved(self, repo: Repo, pull: PullRequest, host: Host) -> bool:
        return self._client(host).pull_is_approved(repo, pull)

    def update_status(
        self,
        repo: Repo,
        pull: PullRequest,
        state: CommitStatus,
        description: str,
        host: Host,
    ) -> None:
        self._client(host).update_status(repo, pull, state, description)