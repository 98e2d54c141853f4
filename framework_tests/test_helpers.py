import os

import pytest

from cluster_deployer.utils import helpers


def test_run_command():
    assert helpers.run_command(["echo", "foo"]) == b"foo\n"


def test_run_command_failure():
    with pytest.raises(helpers.CommandError) as excinfo:
        helpers.run_command("false")
    assert excinfo.value.returncode == 1
    assert excinfo.value.cmd_str == "false"


def test_run_command_missing_binary():
    with pytest.raises(helpers.CommandError) as excinfo:
        helpers.run_command("/nonexistent/binary")
    assert excinfo.value.returncode == -1


def test_run_command_inherit_env():
    env = {**os.environ, "DEPLOYER_TEST_VAR": "1"}
    helpers.run_command_inherit(["sh", "-c", 'test "$DEPLOYER_TEST_VAR" = 1'], env=env)

    with pytest.raises(helpers.CommandError, match="exited with status 3"):
        helpers.run_command_inherit(["sh", "-c", "exit 3"])


@pytest.mark.parametrize(
    ("value", "expected"),
    (
        ("a-0,b-1", ["a-0", "b-1"]),
        (" a-0 , ,b-1,", ["a-0", "b-1"]),
        ("", []),
    ),
)
def test_csv_arg(value: str, expected: list[str]):
    assert helpers.csv_arg(value) == expected
