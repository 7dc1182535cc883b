# tfplanbot

Building blocks for running `terraform plan` in response to pull requests.

- `project_finder` works out which Terraform projects a list of modified files touches.
- `locking` and `lockdb` lock each project and workspace. Only one pull request can hold a given lock at a time.
- `project_config` reads a project's `atlantis.yaml`.
- `run` runs the hook commands from that file as shell scripts.
- `terraform` runs `terraform`, choosing `init` or `get` by version.
- `project_pre_execute` and `plan_executor` put these together to plan a pull request.
- `markdown_renderer` turns the results into a markdown comment.
- `pull_closed_executor` releases locks when a pull request closes.

## Installation

```
pip install tfplanbot
```

The package needs `terraform` on `$PATH`. To use a version other than the default, install that version as `terraform<version>`, for example `terraform0.8.8`.

## Finding modified projects

```python
from tfplanbot.project_finder import DefaultProjectFinder

finder = DefaultProjectFinder()
projects = finder.find_modified(
    ["root.tf", "parent/a.tf", "parent/child/env/staging.tfvars"],
    "owner/repo",
)
print([p.path for p in projects])  # ['.', 'parent', 'parent/child']
```

The finder applies these rules:

- Only file names containing `.tf` count.
- `terraform.tfstate` and `terraform.tfstate.backup` files are ignored.
- A file inside an `env/` directory belongs to the directory one level up.
- A file under a `modules/` directory belongs to the directory that holds `modules/`.
- Each path is returned once, in order of first appearance.

`models.new_project(repo_full_name, path)` cleans the path it is given. The repo root is always `"."`.

## Locking

`LockingClient` wraps a storage backend. `lockdb.SQLiteLocker` is a backend that keeps locks in an SQLite database. `open_locker(data_dir)` creates `data_dir` if needed and opens `atlantis.db` inside it.

```python
from tfplanbot.lockdb import open_locker
from tfplanbot.locking import LockingClient
from tfplanbot.models import PullRequest, User, new_project

locker = LockingClient(open_locker("/var/lib/tfplanbot"))
response = locker.try_lock(
    new_project("owner/repo", "path"),
    "default",
    PullRequest(num=1),
    User(username="alice"),
)
print(response.lock_acquired, response.lock_key)  # True owner/repo/path/default
locker.unlock(response.lock_key)
```

Lock keys take the form `{repo full name}/{project path}/{workspace}`.

- `unlock` and `get_lock` raise `InvalidKeyError` for a key in any other form.
- `list()` returns every lock, keyed by its lock key.
- `unlock_by_pull(repo_full_name, pull_num)` deletes every lock the pull request holds in that repo and returns the deleted locks.
- Database problems raise `LockDBError`.
- `SQLiteLocker` can be used as a context manager; it closes the connection on exit.

## Project configuration

```python
from tfplanbot.project_config import ProjectConfigManager

manager = ProjectConfigManager()
if manager.exists("/path/to/project"):
    config = manager.read("/path/to/project")
    print(config.pre_plan, config.terraform_version)
    print(config.get_extra_arguments("plan"))
```

An `atlantis.yaml` file can set the following keys:

- `terraform_version`
- hook sections `pre_init`, `pre_get`, `pre_plan`, `post_plan`, `pre_apply` and `post_apply`, each holding a `commands` list
- `extra_arguments`, a list of entries with `command_name` and `arguments`

`read` raises `ProjectConfigError` in these cases:

- the file cannot be read
- the YAML is invalid or has the wrong shape
- the version is not a valid version

## Running hooks and terraform

`run.Runner().execute(commands, path, workspace, terraform_version, stage)` does the following:

1. It writes the commands to a temporary script that starts with `#!/bin/sh -e`.
2. It sets `WORKSPACE`, `ATLANTIS_TERRAFORM_VERSION` and `DIR` in the process environment.
3. It runs the script through `sh` and returns the combined output.

It raises `RunError` if the command list is empty or the script exits non-zero.

`terraform.new_client()` runs `terraform version` to learn the default version. It raises `TerraformNotFoundError` if `terraform` is missing from `$PATH`.

`TerraformClient` has two methods:

- `run_command_with_version(path, args, version, workspace)` runs a command in `path`. It returns the output, or raises `TerraformError`; the error's `output` attribute holds what terraform printed.
- `init(path, workspace, extra_init_args, version)` runs `terraform init`, then selects the workspace. If selecting fails, it creates the workspace. On 0.9.x it uses `env` instead of `workspace`.

`must_constraint(spec)` parses a version constraint such as `">=0.9,<0.10"`. It raises `ValueError` if the constraint is malformed.

## Planning a pull request

`DefaultProjectPreExecutor.execute(ctx, repo_dir, project)` runs these steps for one project:

1. Take the lock. If another pull request holds it, the result is a failure.
2. Read `atlantis.yaml`, if the project has one.
3. Prepare terraform:
   - For 0.9.0 and later, run `pre_init` hooks, then `init`.
   - For older versions, run `pre_get` hooks, then `terraform get -no-color`.
4. Run the `pre_plan` or `pre_apply` hooks.

`PlanExecutor.execute(ctx)` uses that for each modified project:

1. It asks the VCS client for the modified files.
2. It finds the projects those files belong to.
3. It clones the repository through the workspace object it was given.
4. It runs `terraform plan -refresh -no-color -out <workspace>.tfplan -var atlantis_user=<username>`. Extra arguments from the config and the command's flags are added. If `env/<workspace>.tfvars` exists, it is passed with `-var-file`.
5. It runs `post_plan` hooks.

If a plan fails, its lock is released. The result is a `commands.CommandResponse`: an error, a failure, or one `ProjectResult` per project. `ProjectResult.status()` maps a result to a `vcs.CommitStatus`.

`MarkdownRenderer().render(response, command_name, log, verbose)` turns a response into a comment body:

- Multiple projects are listed by path in sorted order.
- A verbose render appends the log in a collapsible section.
- `CommandName.HELP` renders the usage text.

`PullClosedExecutor.clean_up_pull(repo, pull, host)` runs when a pull request closes:

1. It deletes the workspace.
2. It releases every lock the pull request held.
3. If there were any locks, it comments with the released paths and workspaces.

It raises `CleanUpError` if deleting the workspace or releasing the locks fails.

`vcs.DefaultClientProxy` routes each call to the GitHub or GitLab client by `Host`. A host with no client configured gets a `NotConfiguredVCSClient`, which raises `VCSError` on every call.

## What the package does not do

Several pieces must come from the caller:

- **VCS clients.** There are no GitHub or GitLab API clients. `DefaultClientProxy` needs clients with `get_modified_files`, `create_comment`, `pull_is_approved` and `update_status` methods.
- **Workspace.** There is no workspace implementation. `PlanExecutor` and `PullClosedExecutor` need an object with `clone(base_repo, head_repo, pull, workspace)` and `delete(repo, pull)`.

The package also has no apply step, no comment parsing, no webhook server and no command-line program.

## Running tests

```
pip install "tfplanbot[test]"
pytest
```