"""Rendering command responses as markdown comments."""

from __future__ import annotations

from tfplanbot.commands import CommandName, CommandResponse, ProjectResult

_HELP = (
    "```cmake\n"
    "atlantis - Terraform collaboration tool that enables you to collaborate on infrastructure\n"
    "safely and securely.\n"
    "\n"
    "Usage: atlantis <command> [workspace] [--verbose]\n"
    "\n"
    "Commands:\n"
    "plan           Runs 'terraform plan' on the files changed in the pull request\n"
    "apply          Runs 'terraform apply' using the plans generated by 'atlantis plan'\n"
    "help           Get help\n"
    "\n"
    "Examples:\n"
    "\n"
    "# Generates a plan for staging workspace\n"
    "atlantis plan staging\n"
    "\n"
    "# Generates a plan for a standalone terraform project\n"
    "atlantis plan\n"
    "\n"
    "# Applies a plan for staging workspace\n"
    "atlantis apply staging\n"
    "\n"
    "# Applies a plan for a standalone terraform project\n"
    "atlantis apply\n"
)


def _title(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def _error_text(command: str, error: BaseException) -> str:
    return f"**{command} Error**\n```\n{error}\n```\n"


def _failure_text(command: str, failure: str) -> str:
    return f"**{command} Failed**: {failure}\n"


def _log_section(log: str, verbose: bool) -> str:
    details = ""
    if verbose:
        details = f"\n<details><summary>Log</summary>\n  <p>\n\n```\n{log}```\n</p></details>"
    return details + "\n"


def _render_result(command: str, result: ProjectResult) -> str:
    if result.error is not None:
        return _error_text(command, result.error)
    if result.failure:
        return _failure_text(command, result.failure)
    if result.plan_success is not None:
        plan = result.plan_success
        return (
            f"```diff\n{plan.terraform_output}\n```\n\n"
            f"* To **discard** this plan click [here]({plan.lock_url})."
        )
    if result.apply_success:
        return f"```diff\n{result.apply_success}\n```"
    return "Found no template. This is a bug!"


class MarkdownRenderer:
    """Renders command responses as markdown."""

    def render(
        self,
        response: CommandResponse,
        command_name: CommandName,
        log: str,
        verbose: bool,
    ) -> str:
        """Format the response to the command as a markdown string."""
        if command_name is CommandName.HELP:
            return _HELP
        command = _title(str(command_name))
        log_section = _log_section(log, verbose)
        if response.error is not None:
            return _error_text(command, response.error) + log_section
        if response.failure:
            return _failure_text(command, response.failure) + log_section
        return self._render_project_results(response.project_results, command, log_section)

    def _render_project_results(
        self, project_results: list[ProjectResult], command: str, log_section: str
    ) -> str:
        results = {result.path: _render_result(command, result) for result in project_results}
        if len(results) == 1:
            return next(iter(results.values())) + "\n" + log_section

        paths = sorted(results)
        parts = [f"Ran {command} in {len(results)} directories:\n"]
        parts.extend(f" * `{path}`\n" for path in paths)
        parts.append("\n")
        parts.extend(f"## {path}/\n{results[path]}\n---\n" for path in paths)
        parts.append(log_section)
        return "".join(parts)