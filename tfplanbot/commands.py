"""Commands, their context and the results of running them."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from tfplanbot.models import PullRequest, Repo, User
from tfplanbot.vcs import CommitStatus, Host


class CommandName(enum.Enum):
    """The commands a user can run from a pull request comment."""

    APPLY = "apply"
    PLAN = "plan"
    HELP = "help"

    def __str__(self) -> str:
        return self.value


@dataclass
class Command:
    """A parsed command: its name, workspace, verbosity and extra flags."""

    name: CommandName = CommandName.PLAN
    workspace: str = ""
    verbose: bool = False
    flags: list[str] = field(default_factory=list)


@dataclass
class CommandContext:
    """Everything known about the pull request a command was run on."""

    base_repo: Repo = field(default_factory=Repo)
    head_repo: Repo = field(default_factory=Repo)
    pull: PullRequest = field(default_factory=PullRequest)
    user: User = field(default_factory=User)
    command: Command = field(default_factory=Command)
    vcs_host: Host = Host.GITHUB


@dataclass(frozen=True)
class PlanSuccess:
    """The result of a successful plan."""

    terraform_output: str = ""
    lock_url: str = ""


@dataclass
class ProjectResult:
    """The result of running plan or apply for one project."""

    path: str = ""
    error: BaseException | None = None
    failure: str = ""
    plan_success: PlanSuccess | None = None
    apply_success: str = ""

    def status(self) -> CommitStatus:
        """Return the commit status this result maps to."""
        if self.error is not None or self.failure:
            return CommitStatus.FAILED
        return CommitStatus.SUCCESS


@dataclass
class CommandResponse:
    """The response to a command: an error, a failure or per-project results."""

    error: BaseException | None = None
    failure: str = ""
    project_results: list[ProjectResult] = field(default_factory=list)