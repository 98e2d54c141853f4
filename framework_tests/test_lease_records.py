import pathlib as pl

from cluster_deployer.deployer import lease_records


def test_add_and_remove(artifacts_dir: pl.Path):
    lease_records.add(artifacts_dir, "proj-x")
    lease_records.add(artifacts_dir, "proj-y")
    lease_records.add(artifacts_dir, "proj-x")
    assert lease_records.load(artifacts_dir) == ["proj-x", "proj-y"]

    lease_records.remove(artifacts_dir, "proj-x")
    assert lease_records.load(artifacts_dir) == ["proj-y"]


def test_missing_dir(tmp_path: pl.Path):
    missing = tmp_path / "nonexistent"
    assert lease_records.load(missing) == []
    lease_records.remove(missing, "proj-x")
    assert not missing.exists()


def test_add_creates_dir(tmp_path: pl.Path):
    adir = tmp_path / "new"
    lease_records.add(adir, "proj-x")
    assert lease_records.get_leases_file(adir).exists()
    assert lease_records.load(adir) == ["proj-x"]
