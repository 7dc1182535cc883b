"""Running terraform commands."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Sequence

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

_log = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"Terraform v(.*)\n")


class TerraformError(Exception):
    """Raised when a terraform command fails; output holds what it printed."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class TerraformNotFoundError(TerraformError):
    """Raised when no terraform executable is on the PATH."""


def must_constraint(spec: str) -> SpecifierSet:
    """Parse a comma-separated version constraint; raise ValueError if malformed."""
    try:
        return SpecifierSet(spec)
    except InvalidSpecifier as err:
        raise ValueError(f"malformed constraint: {spec}") from err


# In 0.9.* the workspace command was still called env.
_ZERO_POINT_NINE = must_constraint(">=0.9,<0.10")


def _format_version(version: Version) -> str:
    """Render a version with at least three release segments."""
    release = list(version.release) + [0] * (3 - len(version.release))
    base = ".".join(str(part) for part in release)
    if version.epoch:
        base = f"{version.epoch}!{base}"
    return base + str(version)[len(version.base_version):]


def parse_version_output(output: str) -> Version:
    """Extract the version from the output of `terraform version`."""
    match = _VERSION_RE.search(output)
    if match is None:
        raise TerraformError(f"could not parse terraform version from {output}", output)
    try:
        return Version(match.group(1))
    except InvalidVersion as err:
        raise TerraformError(f"parsing terraform version: {err}", output) from err


def _run_combined(args: Sequence[str], **kwargs) -> tuple[int, str]:
    proc = subprocess.run(
        list(args), stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False, **kwargs
    )
    return proc.returncode, proc.stdout.decode(errors="replace")


def new_client() -> TerraformClient:
    """Create a client whose default version is that of terraform on the PATH."""
    try:
        code, output = _run_combined(["terraform", "version"])
    except FileNotFoundError as err:
        raise TerraformNotFoundError(
            "terraform not found in $PATH. \n\nDownload terraform and add it to your $PATH"
        ) from err
    if code != 0:
        raise TerraformError(f"running terraform version: exit status {code}: {output}", output)
    return TerraformClient(parse_version_output(output))


class TerraformClient:
    """Runs terraform, choosing the executable by version."""

    def __init__(self, default_version: Version) -> None:
        self._default_version = default_version

    def version(self) -> Version:
        """Return the version of the terraform executable on the PATH."""
        return self._default_version

    def run_command_with_version(
        self,
        path: str,
        args: Sequence[str],
        version: Version | None,
        workspace: str,
    ) -> str:
        """Run terraform with args in path and return its combined output.

        A version other than the default runs the executable named
        terraform{version}. WORKSPACE, ATLANTIS_TERRAFORM_VERSION and DIR
        are set for the command unless the environment already sets them.
        """
        if version is None:
            version = self._default_version
        executable = "terraform"
        if version != self._default_version:
            executable = f"terraform{_format_version(version)}"

        env = {
            "WORKSPACE": workspace,
            "ATLANTIS_TERRAFORM_VERSION": _format_version(version),
            "DIR": path,
        }
        env.update(os.environ)

        tf_cmd = f"{executable} {' '.join(args)}"
        command_str = f"sh -c {tf_cmd}"
        try:
            code, output = _run_combined(["sh", "-c", tf_cmd], cwd=path or None, env=env)
        except OSError as err:
            raise TerraformError(f'{err}: running "{command_str}" in "{path}": \n') from err
        if code != 0:
            message = f'exit status {code}: running "{command_str}" in "{path}": \n{output}'
            _log.debug("error: %s", message)
            raise TerraformError(message, output)
        _log.info('successfully ran "%s" in "%s"', command_str, path)
        return output

    def init(
        self,
        path: str,
        workspace: str,
        extra_init_args: Sequence[str] | None,
        version: Version | None,
    ) -> list[str]:
        """Run `terraform init` then select the workspace, creating it if needed.

        Returns the output of each command that was run.
        """
        if version is None:
            version = self._default_version
        outputs = [
            self.run_command_with_version(
                path, ["init", "-no-color", *(extra_init_args or ())], version, workspace
            )
        ]

        workspace_cmd = "env" if version in _ZERO_POINT_NINE else "workspace"
        try:
            outputs.append(
                self.run_command_with_version(
                    path, [workspace_cmd, "select", "-no-color", workspace], version, workspace
                )
            )
        except TerraformError as err:
            outputs.append(err.output)
            outputs.append(
                self.run_command_with_version(
                    path, [workspace_cmd, "new", "-no-color", workspace], version, workspace
                )
            )
        return outputs