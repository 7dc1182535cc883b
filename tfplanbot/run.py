"""Running user-supplied shell commands before and after terraform commands."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from collections.abc import Sequence

from packaging.version import Version

_log = logging.getLogger(__name__)

_INLINE_SHEBANG = "#!/bin/sh -e"


class RunError(Exception):
    """Raised when commands cannot be prepared or exit with an error."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


def _version_string(version: Version | None) -> str:
    """Render a version with at least three release segments."""
    if version is None:
        return ""
    release = list(version.release) + [0] * (3 - len(version.release))
    base = ".".join(str(part) for part in release)
    if version.epoch:
        base = f"{version.epoch}!{base}"
    return base + str(version)[len(version.base_version):]


def create_script(commands: Sequence[str], stage: str) -> str:
    """Write commands to an executable shell script and return its path."""
    try:
        fd, name = tempfile.mkstemp(prefix="atlantis-temp-script")
    except OSError as err:
        raise RunError(f"preparing {stage} shell script: {err}") from err
    try:
        with os.fdopen(fd, "w") as script:
            script.write(f"{_INLINE_SHEBANG}\n")
            script.write("\n".join(commands))
        os.chmod(name, 0o700)
    except OSError as err:
        try:
            os.remove(name)
        except OSError:
            pass
        raise RunError(f"preparing {stage} script {name!r}: {err}") from err
    return name


def execute_script(script: str) -> str:
    """Run the script through sh and return its combined output."""
    proc = subprocess.run(
        ["sh", "-c", script],
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        check=False,
    )
    output = proc.stdout.decode(errors="replace")
    if proc.returncode != 0:
        raise RunError(
            f"running script {script}: {output}: exit status {proc.returncode}", output
        )
    return output


class Runner:
    """Runs a list of commands as one shell script."""

    def execute(
        self,
        commands: Sequence[str],
        path: str,
        workspace: str,
        terraform_version: Version | None,
        stage: str,
    ) -> str:
        """Run commands as a script and return its output.

        WORKSPACE, ATLANTIS_TERRAFORM_VERSION and DIR are set in the
        environment so the script can use them.
        """
        if not commands:
            raise RunError(f"{stage} commands cannot be empty")

        script = create_script(commands, stage)
        try:
            _log.info("running %s commands: %s", stage, list(commands))
            os.environ["WORKSPACE"] = workspace
            os.environ["ATLANTIS_TERRAFORM_VERSION"] = _version_string(terraform_version)
            os.environ["DIR"] = path
            return execute_script(script)
        finally:
            try:
                os.remove(script)
            except OSError:
                pass