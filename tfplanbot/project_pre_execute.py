"""Setup steps shared by plan and apply: locking, config, init and pre hooks."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any

from packaging.version import Version

from tfplanbot.commands import CommandContext, CommandName, ProjectResult
from tfplanbot.locking import TryLockResponse
from tfplanbot.models import Project
from tfplanbot.project_config import ProjectConfig

_log = logging.getLogger(__name__)

_MIN_INIT_VERSION = Version("0.9.0")


def _join(*parts: str) -> str:
    present = [part for part in parts if part]
    if not present:
        return ""
    return posixpath.normpath(posixpath.join(*present))


def _wrap(context: str, err: BaseException) -> RuntimeError:
    wrapped = RuntimeError(f"{context}: {err}")
    wrapped.__cause__ = err
    return wrapped


@dataclass
class PreExecuteResult:
    """Outcome of the setup steps.

    project_result is set when setup ended the run for this project.
    """

    project_result: ProjectResult | None = None
    project_config: ProjectConfig = field(default_factory=ProjectConfig)
    terraform_version: Version | None = None
    lock_response: TryLockResponse = field(default_factory=TryLockResponse)


class DefaultProjectPreExecutor:
    """Runs the tasks that come before both plan and apply."""

    def __init__(self, locker: Any, config_reader: Any, terraform: Any, runner: Any) -> None:
        self.locker = locker
        self.config_reader = config_reader
        self.terraform = terraform
        self.runner = runner

    def execute(self, ctx: CommandContext, repo_dir: str, project: Project) -> PreExecuteResult:
        """Lock the project, read its config, initialise terraform and run pre hooks."""
        workspace = ctx.command.workspace
        try:
            lock_attempt = self.locker.try_lock(project, workspace, ctx.pull, ctx.user)
        except Exception as err:
            return PreExecuteResult(ProjectResult(error=_wrap("acquiring lock", err)))
        if not lock_attempt.lock_acquired and lock_attempt.curr_lock.pull.num != ctx.pull.num:
            return PreExecuteResult(
                ProjectResult(
                    failure=(
                        f"This project is currently locked by #{lock_attempt.curr_lock.pull.num}. "
                        "The locking plan must be applied or discarded before future plans "
                        "can execute."
                    )
                )
            )
        _log.info("acquired lock with id %r", lock_attempt.lock_key)

        config = ProjectConfig()
        absolute_path = _join(repo_dir, project.path)
        if self.config_reader.exists(absolute_path):
            try:
                config = self.config_reader.read(absolute_path)
            except Exception as err:
                return PreExecuteResult(ProjectResult(error=err))
            _log.info("parsed atlantis config file in %r", absolute_path)

        terraform_version = self.terraform.version()
        if config.terraform_version is not None:
            terraform_version = config.terraform_version

        try:
            if terraform_version >= _MIN_INIT_VERSION:
                _log.info(
                    "determined that we are running terraform with version >= 0.9.0. "
                    "Running version %s",
                    terraform_version,
                )
                self._run_hook(config.pre_init, absolute_path, workspace, terraform_version, "pre_init")
                self.terraform.init(
                    absolute_path, workspace, config.get_extra_arguments("init"), terraform_version
                )
            else:
                _log.info(
                    "determined that we are running terraform with version < 0.9.0. "
                    "Running version %s",
                    terraform_version,
                )
                self._run_hook(config.pre_get, absolute_path, workspace, terraform_version, "pre_get")
                self.terraform.run_command_with_version(
                    absolute_path,
                    ["get", "-no-color", *config.get_extra_arguments("get")],
                    terraform_version,
                    workspace,
                )

            stage = f"pre_{str(ctx.command.name).lower()}"
            commands = config.pre_plan if ctx.command.name is CommandName.PLAN else config.pre_apply
            self._run_hook(commands, absolute_path, workspace, terraform_version, stage)
        except Exception as err:
            return PreExecuteResult(ProjectResult(error=err))

        return PreExecuteResult(
            project_config=config,
            terraform_version=terraform_version,
            lock_response=lock_attempt,
        )

    def _run_hook(
        self,
        commands: list[str],
        path: str,
        workspace: str,
        terraform_version: Version,
        stage: str,
    ) -> None:
        if not commands:
            return
        try:
            self.runner.execute(commands, path, workspace, terraform_version, stage)
        except Exception as err:
            raise _wrap(f"running {stage} commands", err) from err