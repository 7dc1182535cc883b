"""Working out which Terraform projects a pull request modified."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable

from tfplanbot.models import Project, new_project

_log = logging.getLogger(__name__)

_EXCLUDE_LIST = ("terraform.tfstate", "terraform.tfstate.backup")


def _dir(path: str) -> str:
    return posixpath.normpath(posixpath.dirname(path))


def _is_terraform_file(file_name: str) -> bool:
    if any(excluded in file_name for excluded in _EXCLUDE_LIST):
        return False
    return ".tf" in file_name


def _project_path(modified_file: str) -> str:
    """Return the project path relative to the repo root; "." for the root."""
    directory = _dir(modified_file)
    if posixpath.basename(directory) == "env":
        # Files in an env/ directory belong to the project one level up.
        return _dir(directory)
    # The trailing slash lets a top-level "modules" directory split too.
    return posixpath.normpath((directory + "/").split("modules/", 1)[0])


class DefaultProjectFinder:
    """Finds the projects touched by a list of modified files."""

    def find_modified(
        self, modified_files: Iterable[str] | None, repo_full_name: str
    ) -> list[Project]:
        """Return the de-duplicated projects modified by the given files."""
        terraform_files = [f for f in modified_files or () if _is_terraform_file(f)]
        if not terraform_files:
            return []
        _log.info(
            "filtered modified files to %d .tf files: %s", len(terraform_files), terraform_files
        )

        unique_paths = list(dict.fromkeys(_project_path(f) for f in terraform_files))
        projects = [new_project(repo_full_name, path) for path in unique_paths]
        _log.info(
            "there are %d modified project(s) at path(s): %s",
            len(projects),
            ", ".join(unique_paths),
        )
        return projects