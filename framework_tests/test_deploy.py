import pathlib as pl

import pytest

from cluster_deployer import deploy
from cluster_deployer.deployer import common
from cluster_deployer.deployer import deployer
from cluster_deployer.utils import framework_log


@pytest.mark.parametrize(
    ("argv", "expected"),
    (
        (["--up"], deployer.Operation.UP),
        (["--down"], deployer.Operation.DOWN),
        (["--up", "--down"], deployer.Operation.UP_DOWN),
        ([], None),
    ),
)
def test_get_operation(argv: list[str], expected: deployer.Operation | None):
    assert deploy.get_operation(deploy.get_args(argv)) == expected


def test_args():
    args = deploy.get_args(["--up", "-c", "a-0,b-1", "-p", "p0,p1", "-n", "5"])
    assert args.clusters == ["a-0", "b-1"]
    assert args.projects == ["p0", "p1"]
    assert args.num_nodes == 5


def test_main_no_operation():
    assert deploy.main([]) == 1


def test_main_failure(
    monkeypatch: pytest.MonkeyPatch, repo_root: pl.Path, artifacts_dir: pl.Path
):
    def _up(self: deployer.Deployer) -> None:
        msg = "exit status 1"
        raise common.BringUpError(msg)

    monkeypatch.setattr(deployer.Deployer, "up", _up)
    argv = ["--up", "-p", "p0", "-r", str(repo_root), "-a", str(artifacts_dir)]
    assert deploy.main(argv) == 1


def test_main_success(
    monkeypatch: pytest.MonkeyPatch, repo_root: pl.Path, artifacts_dir: pl.Path
):
    calls = []
    monkeypatch.setattr(deployer.Deployer, "up", lambda self: calls.append(("up", self)))
    monkeypatch.setattr(deployer.Deployer, "down", lambda self: calls.append(("down", self)))

    argv = ["--up", "--down", "-p", "p0", "-r", str(repo_root), "-a", str(artifacts_dir)]
    assert deploy.main(argv) == 0

    assert [c[0] for c in calls] == ["up", "down"]
    options = calls[0][1].options
    assert options.projects == ["p0"]
    assert options.repo_root == repo_root.resolve()
    assert options.artifacts_dir == artifacts_dir.resolve()


def test_main_framework_log_in_artifacts_dir(
    monkeypatch: pytest.MonkeyPatch, repo_root: pl.Path, artifacts_dir: pl.Path
):
    def _up(self: deployer.Deployer) -> None:
        framework_log.framework_logger().error("Cluster bring-up failed: exit status 1")

    monkeypatch.setattr(deployer.Deployer, "up", _up)
    argv = ["--up", "-p", "p0", "-r", str(repo_root), "-a", str(artifacts_dir)]
    assert deploy.main(argv) == 0

    log_path = artifacts_dir.resolve() / "deployer.log"
    assert framework_log.get_framework_log_path() == log_path
    assert "Cluster bring-up failed" in log_path.read_text()
