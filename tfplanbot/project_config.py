"""Reading the per-project atlantis.yaml config file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import yaml
from packaging.version import InvalidVersion, Version

PROJECT_CONFIG_FILE = "atlantis.yaml"


class ProjectConfigError(Exception):
    """Raised when a project config file cannot be read or parsed."""


@dataclass
class ProjectConfig:
    """Commands to run around terraform, plus version and extra arguments."""

    pre_init: list[str] = field(default_factory=list)
    pre_get: list[str] = field(default_factory=list)
    pre_plan: list[str] = field(default_factory=list)
    post_plan: list[str] = field(default_factory=list)
    pre_apply: list[str] = field(default_factory=list)
    post_apply: list[str] = field(default_factory=list)
    terraform_version: Version | None = None
    extra_arguments: dict[str, list[str]] = field(default_factory=dict)

    def get_extra_arguments(self, command: str) -> list[str]:
        """Return the arguments to append to the named terraform command."""
        return list(self.extra_arguments.get(command, ()))


def _scalar(value: Any, what: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise ProjectConfigError(f"parsing {PROJECT_CONFIG_FILE}: {what} must be a string")


def _string_list(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProjectConfigError(f"parsing {PROJECT_CONFIG_FILE}: {what} must be a list")
    return [_scalar(item, what) for item in value]


def _hook(data: dict, name: str) -> list[str]:
    hook = data.get(name)
    if hook is None:
        return []
    if not isinstance(hook, dict):
        raise ProjectConfigError(f"parsing {PROJECT_CONFIG_FILE}: {name} must be a mapping")
    return _string_list(hook.get("commands"), f"{name}.commands")


def _extra_arguments(value: Any) -> dict[str, list[str]]:
    if value is None:
        return {}
    if not isinstance(value, list):
        raise ProjectConfigError(f"parsing {PROJECT_CONFIG_FILE}: extra_arguments must be a list")
    result: dict[str, list[str]] = {}
    for entry in value:
        if not isinstance(entry, dict):
            raise ProjectConfigError(
                f"parsing {PROJECT_CONFIG_FILE}: extra_arguments entries must be mappings"
            )
        name = _scalar(entry.get("command_name", ""), "command_name")
        # The first entry for a command wins.
        result.setdefault(name, _string_list(entry.get("arguments"), "arguments"))
    return result


class ProjectConfigManager:
    """Finds and reads project config files."""

    def exists(self, project_path: str) -> bool:
        """Return True if a config file exists in the project root."""
        return os.path.exists(os.path.join(project_path, PROJECT_CONFIG_FILE))

    def read(self, project_path: str) -> ProjectConfig:
        """Read and parse the config file in the project root."""
        filename = os.path.join(project_path, PROJECT_CONFIG_FILE)
        try:
            with open(filename, encoding="utf-8") as f:
                raw = f.read()
        except OSError as err:
            raise ProjectConfigError(f"reading {PROJECT_CONFIG_FILE}: {err}") from err
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as err:
            raise ProjectConfigError(f"parsing {PROJECT_CONFIG_FILE}: {err}") from err
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ProjectConfigError(
                f"parsing {PROJECT_CONFIG_FILE}: expected a mapping at the top level"
            )

        version = None
        raw_version = data.get("terraform_version")
        if raw_version is not None and raw_version != "":
            try:
                version = Version(_scalar(raw_version, "terraform_version"))
            except InvalidVersion as err:
                raise ProjectConfigError(f"parsing terraform_version: {err}") from err

        return ProjectConfig(
            pre_init=_hook(data, "pre_init"),
            pre_get=_hook(data, "pre_get"),
            pre_plan=_hook(data, "pre_plan"),
            post_plan=_hook(data, "post_plan"),
            pre_apply=_hook(data, "pre_apply"),
            post_apply=_hook(data, "post_apply"),
            terraform_version=version,
            extra_arguments=_extra_arguments(data.get("extra_arguments")),
        )