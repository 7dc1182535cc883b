"""Models shared across the package: repos, pull requests, projects and locks."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


class PullRequestState(enum.Enum):
    """State of a pull request. Merged requests are reported as closed."""

    OPEN = 0
    CLOSED = 1


@dataclass(frozen=True)
class Repo:
    """A VCS repository."""

    full_name: str = ""
    owner: str = ""
    name: str = ""
    clone_url: str = ""
    sanitized_clone_url: str = ""


@dataclass(frozen=True)
class PullRequest:
    """A VCS pull request (a merge request on some hosts)."""

    num: int = 0
    head_commit: str = ""
    url: str = ""
    branch: str = ""
    author: str = ""
    state: PullRequestState = PullRequestState.OPEN


@dataclass(frozen=True)
class User:
    """A VCS user."""

    username: str = ""


@dataclass(frozen=True)
class Project:
    """A Terraform project: a repo and the path of the project root within it.

    A path of "." means the project is at the repo root; it never ends in "/".
    """

    repo_full_name: str = ""
    path: str = ""


@dataclass(frozen=True)
class ProjectLock:
    """A lock held on a project and workspace."""

    project: Project = field(default_factory=Project)
    pull: PullRequest = field(default_factory=PullRequest)
    user: User = field(default_factory=User)
    workspace: str = ""
    time: datetime | None = None


@dataclass(frozen=True)
class Plan:
    """A plan file on disk for a project."""

    project: Project = field(default_factory=Project)
    local_path: str = ""


def _clean(path: str) -> str:
    """Return the shortest lexically equivalent slash-separated path."""
    if not path:
        return "."
    rooted = path.startswith("/")
    parts: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not rooted:
                parts.append("..")
        else:
            parts.append(segment)
    joined = "/".join(parts)
    if rooted:
        return "/" + joined
    return joined or "."


def new_project(repo_full_name: str, path: str) -> Project:
    """Build a Project with a cleaned path; the repo root is always "."."""
    cleaned = _clean(path)
    if cleaned == "/":
        cleaned = "."
    return Project(repo_full_name=repo_full_name, path=cleaned)