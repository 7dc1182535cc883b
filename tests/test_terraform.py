import os

import pytest
from packaging.specifiers import SpecifierSet
from packaging.version import Version

from tfplanbot.terraform import (
    TerraformClient,
    TerraformError,
    TerraformNotFoundError,
    must_constraint,
    new_client,
    parse_version_output,
)


def _install(bin_dir, name, body):
    script = bin_dir / name
    script.write_text("#!/bin/sh\n" + body)
    script.chmod(0o755)


@pytest.fixture
def bin_dir(tmp_path, monkeypatch):
    directory = tmp_path / "bin"
    directory.mkdir()
    monkeypatch.setenv("PATH", f"{directory}{os.pathsep}{os.environ.get('PATH', '')}")
    for name in ("WORKSPACE", "ATLANTIS_TERRAFORM_VERSION", "DIR"):
        monkeypatch.delenv(name, raising=False)
    return directory


def test_must_constraint_raises_on_bad_constraint():
    with pytest.raises(ValueError):
        must_constraint("invalid constraint")


def test_must_constraint():
    c = must_constraint(">0.1")
    assert str(c) == str(SpecifierSet(">0.1"))
    assert Version("0.5") in c
    assert Version("0.1") not in c


def test_parse_version_output():
    assert parse_version_output("Terraform v0.11.1\n") == Version("0.11.1")


def test_parse_version_output_without_version():
    with pytest.raises(TerraformError, match="could not parse terraform version"):
        parse_version_output("something else")


def test_new_client_reads_version(bin_dir):
    _install(bin_dir, "terraform", 'echo "Terraform v0.10.8"\n')
    assert new_client().version() == Version("0.10.8")


def test_new_client_not_found(tmp_path, monkeypatch):
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    with pytest.raises(TerraformNotFoundError, match="terraform not found in"):
        new_client()


def test_new_client_command_fails(bin_dir):
    _install(bin_dir, "terraform", "echo broken\nexit 2\n")
    with pytest.raises(TerraformError, match="running terraform version") as info:
        new_client()
    assert not isinstance(info.value, TerraformNotFoundError)
    assert info.value.output == "broken\n"


def test_run_command_sets_environment(bin_dir, tmp_path):
    _install(
        bin_dir,
        "terraform",
        'echo "$* $WORKSPACE $ATLANTIS_TERRAFORM_VERSION $DIR"\npwd -P\n',
    )
    client = TerraformClient(Version("0.11.1"))
    out = client.run_command_with_version(str(tmp_path), ["plan", "-no-color"], Version("0.11.1"), "staging")
    first, second = out.splitlines()
    assert first == f"plan -no-color staging 0.11.1 {tmp_path}"
    assert second == os.path.realpath(tmp_path)


def test_run_command_uses_versioned_executable(bin_dir, tmp_path):
    _install(bin_dir, "terraform0.9.0", 'echo "versioned $ATLANTIS_TERRAFORM_VERSION"\n')
    client = TerraformClient(Version("0.11.1"))
    out = client.run_command_with_version(str(tmp_path), ["plan"], Version("0.9"), "default")
    assert out == "versioned 0.9.0\n"


def test_run_command_failure_carries_output(bin_dir, tmp_path):
    _install(bin_dir, "terraform", "echo boom\nexit 3\n")
    client = TerraformClient(Version("0.11.1"))
    with pytest.raises(TerraformError) as info:
        client.run_command_with_version(str(tmp_path), ["apply"], None, "default")
    assert info.value.output == "boom\n"
    assert "exit status 3" in str(info.value)
    assert "terraform apply" in str(info.value)


_RECORDING = (
    'echo "$(basename "$0") $*" >> "$TFPB_CALLS"\n'
    'if [ "$2" = "select" ]; then exit 1; fi\n'
    'echo "ran $*"\n'
)


def test_init_creates_workspace_when_select_fails(bin_dir, tmp_path, monkeypatch):
    calls = tmp_path / "calls.log"
    monkeypatch.setenv("TFPB_CALLS", str(calls))
    _install(bin_dir, "terraform", _RECORDING)
    client = TerraformClient(Version("0.11.1"))
    outputs = client.init(str(tmp_path), "staging", ["-upgrade"], Version("0.11.1"))
    assert outputs == [
        "ran init -no-color -upgrade\n",
        "",
        "ran workspace new -no-color staging\n",
    ]
    assert calls.read_text().splitlines() == [
        "terraform init -no-color -upgrade",
        "terraform workspace select -no-color staging",
        "terraform workspace new -no-color staging",
    ]


def test_init_uses_env_command_for_zero_point_nine(bin_dir, tmp_path, monkeypatch):
    calls = tmp_path / "calls.log"
    monkeypatch.setenv("TFPB_CALLS", str(calls))
    _install(bin_dir, "terraform0.9.5", _RECORDING)
    client = TerraformClient(Version("0.11.1"))
    client.init(str(tmp_path), "default", None, Version("0.9.5"))
    assert calls.read_text().splitlines() == [
        "terraform0.9.5 init -no-color",
        "terraform0.9.5 env select -no-color default",
        "terraform0.9.5 env new -no-color default",
    ]


def test_init_stops_when_init_fails(bin_dir, tmp_path, monkeypatch):
    calls = tmp_path / "calls.log"
    monkeypatch.setenv("TFPB_CALLS", str(calls))
    _install(bin_dir, "terraform", 'echo "$*" >> "$TFPB_CALLS"\nexit 1\n')
    client = TerraformClient(Version("0.11.1"))
    with pytest.raises(TerraformError):
        client.init(str(tmp_path), "default", [], None)
    assert calls.read_text().splitlines() == ["init -no-color"]