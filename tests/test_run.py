import os
import stat

import pytest
from packaging.version import Version

from tfplanbot.run import RunError, Runner, create_script, execute_script


@pytest.fixture
def env(monkeypatch):
    # Set the variables first so they are restored after the test.
    monkeypatch.setenv("WORKSPACE", "")
    monkeypatch.setenv("ATLANTIS_TERRAFORM_VERSION", "")
    monkeypatch.setenv("DIR", "")


def test_create_script_valid():
    script = create_script(["echo", "date"], "post_apply")
    try:
        assert script != ""
        assert os.path.isfile(script)
        with open(script) as f:
            assert f.read() == "#!/bin/sh -e\necho\ndate"
        assert os.stat(script).st_mode & stat.S_IXUSR
    finally:
        os.remove(script)


def test_execute_script_invalid():
    script = create_script(["invalid", "command"], "post_apply")
    try:
        with pytest.raises(RunError) as excinfo:
            execute_script(script)
        assert f"running script {script}" in str(excinfo.value)
    finally:
        os.remove(script)


def test_execute_script_valid():
    script = create_script(["echo", "date"], "post_apply")
    try:
        output = execute_script(script)
        lines = output.splitlines()
        assert len(lines) == 2
        assert lines[0] == ""
        assert lines[1].strip() != ""
    finally:
        os.remove(script)


def test_run_valid(env):
    output = Runner().execute(
        ["echo", "date"], "/tmp/atlantis", "staging", Version("0.8.8"), "post_apply"
    )
    assert output.startswith("\n")
    assert output.count("\n") == 2


def test_run_sets_environment(env):
    output = Runner().execute(
        ['echo "$WORKSPACE $ATLANTIS_TERRAFORM_VERSION $DIR"'],
        "/tmp/atlantis",
        "staging",
        Version("0.9"),
        "pre_plan",
    )
    assert output == "staging 0.9.0 /tmp/atlantis\n"


def test_run_empty_commands():
    with pytest.raises(RunError) as excinfo:
        Runner().execute([], "/tmp", "default", Version("0.9.0"), "pre_init")
    assert str(excinfo.value) == "pre_init commands cannot be empty"


def test_run_failure_carries_output(env):
    with pytest.raises(RunError) as excinfo:
        Runner().execute(["echo out", "exit 3"], "/tmp", "default", Version("0.9.0"), "stage")
    assert excinfo.value.output == "out\n"