import os
import pathlib as pl
import tempfile
import typing as tp

if not os.environ.get("ARTIFACTS"):
    os.environ["ARTIFACTS"] = tempfile.mkdtemp(prefix="cluster-deployer-tests-")

import pytest  # noqa: E402

from cluster_deployer.deployer import common  # noqa: E402
from cluster_deployer.utils import configuration  # noqa: E402
from cluster_deployer.utils import framework_log  # noqa: E402


@pytest.fixture
def repo_root(tmp_path: pl.Path) -> pl.Path:
    """Checkout with (empty) cluster scripts."""
    root = tmp_path / "kubernetes"
    for script in (common.KUBE_UP_SCRIPT, common.KUBE_DOWN_SCRIPT, common.KUBECTL_SCRIPT):
        script_path = root.joinpath(*script)
        script_path.parent.mkdir(parents=True, exist_ok=True)
        script_path.touch(mode=0o755)
    return root


@pytest.fixture
def artifacts_dir(tmp_path: pl.Path) -> pl.Path:
    adir = tmp_path / "artifacts"
    adir.mkdir()
    return adir


@pytest.fixture(autouse=True)
def _reset_framework_log_dir() -> tp.Generator[None, None, None]:
    yield
    framework_log.set_log_dir(configuration.ARTIFACTS_DIR)
