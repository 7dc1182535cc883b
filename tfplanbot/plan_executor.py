"""Running terraform plan for the projects a pull request modified."""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from tfplanbot.commands import CommandContext, CommandResponse, PlanSuccess, ProjectResult
from tfplanbot.models import Project
from tfplanbot.project_finder import DefaultProjectFinder

_log = logging.getLogger(__name__)

# Terraform variable holding the VCS username of whoever ran the command.
_ATLANTIS_USER_TF_VAR = "atlantis_user"


def _join(*parts: str) -> str:
    present = [part for part in parts if part]
    if not present:
        return ""
    return posixpath.normpath(posixpath.join(*present))


def _wrap(context: str, err: BaseException) -> RuntimeError:
    wrapped = RuntimeError(f"{context}: {err}")
    wrapped.__cause__ = err
    return wrapped


class PlanExecutor:
    """Handles everything related to running terraform plan."""

    def __init__(
        self,
        vcs_client: Any = None,
        terraform: Any = None,
        locker: Any = None,
        lock_url: Callable[[str], str] | None = None,
        runner: Any = None,
        workspace: Any = None,
        project_pre_execute: Any = None,
        project_finder: Any = None,
    ) -> None:
        self.vcs_client = vcs_client
        self.terraform = terraform
        self.locker = locker
        self.lock_url = lock_url
        self.runner = runner
        self.workspace = workspace
        self.project_pre_execute = project_pre_execute
        self.project_finder = project_finder if project_finder is not None else DefaultProjectFinder()

    def set_lock_url(self, func: Callable[[str], str]) -> None:
        """Set the function that turns a lock id into a URL for viewing it."""
        self.lock_url = func

    def execute(self, ctx: CommandContext) -> CommandResponse:
        """Run terraform plan for every project modified by the pull request."""
        try:
            modified_files = self.vcs_client.get_modified_files(
                ctx.base_repo, ctx.pull, ctx.vcs_host
            )
        except Exception as err:
            return CommandResponse(error=_wrap("getting modified files", err))
        _log.info("found %d files modified in this pull request", len(modified_files or ()))

        projects = self.project_finder.find_modified(modified_files, ctx.base_repo.full_name)
        if not projects:
            return CommandResponse(failure="No Terraform files were modified.")

        try:
            clone_dir = self.workspace.clone(
                ctx.base_repo, ctx.head_repo, ctx.pull, ctx.command.workspace
            )
        except Exception as err:
            return CommandResponse(error=err)

        results = []
        for project in projects:
            _log.info("running plan for project at path %r", project.path)
            result = self._plan(ctx, clone_dir, project)
            results.append(replace(result, path=project.path))
        return CommandResponse(project_results=results)

    def _plan(self, ctx: CommandContext, repo_dir: str, project: Project) -> ProjectResult:
        pre = self.project_pre_execute.execute(ctx, repo_dir, project)
        if pre.project_result is not None:
            return pre.project_result
        config = pre.project_config
        terraform_version = pre.terraform_version
        workspace = ctx.command.workspace
        project_dir = _join(repo_dir, project.path)

        plan_file = _join(repo_dir, project.path, f"{workspace}.tfplan")
        user_var = f"{_ATLANTIS_USER_TF_VAR}={ctx.user.username}"
        tf_plan_cmd = [
            "plan",
            "-refresh",
            "-no-color",
            "-out",
            plan_file,
            "-var",
            user_var,
            *config.get_extra_arguments(str(ctx.command.name)),
            *ctx.command.flags,
        ]

        env_file_name = posixpath.join("env", f"{workspace}.tfvars")
        if os.path.exists(_join(repo_dir, project.path, env_file_name)):
            tf_plan_cmd += ["-var-file", env_file_name]

        try:
            output = self.terraform.run_command_with_version(
                project_dir, tf_plan_cmd, terraform_version, workspace
            )
        except Exception as err:
            # The plan failed so release the lock it was holding.
            try:
                self.locker.unlock(pre.lock_response.lock_key)
            except Exception as unlock_err:
                _log.error("error unlocking state after plan error: %s", unlock_err)
            failed_output = getattr(err, "output", "")
            return ProjectResult(error=RuntimeError(f"{err}\n{failed_output}"))
        _log.info("plan succeeded")

        if config.post_plan:
            try:
                self.runner.execute(
                    config.post_plan, project_dir, workspace, terraform_version, "post_plan"
                )
            except Exception as err:
                return ProjectResult(error=_wrap("running post plan commands", err))

        return ProjectResult(
            plan_success=PlanSuccess(
                terraform_output=output,
                lock_url=self.lock_url(pre.lock_response.lock_key),
            )
        )