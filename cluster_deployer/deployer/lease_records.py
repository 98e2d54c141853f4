"""Record of leases acquired from Boskos.

Leases acquired by a failed `up` are not released automatically. The names are recorded
in a JSON file in the artifacts directory, so a later `down` (or an operator) can release them.
Multiple deployer processes may share the artifacts directory, so access to the file is locked.
"""

import json
import logging
import pathlib as pl

from filelock import FileLock

from cluster_deployer.deployer import common

LOGGER = logging.getLogger(__name__)

# Suppress messages from filelock
logging.getLogger("filelock").setLevel(logging.WARNING)


def get_leases_file(artifacts_dir: pl.Path) -> pl.Path:
    return artifacts_dir / common.LEASES_FILE


def _get_lock(artifacts_dir: pl.Path) -> FileLock:
    return FileLock(artifacts_dir / common.LEASES_LOCK)


def _read(leases_file: pl.Path) -> list[str]:
    if not leases_file.exists():
        return []
    with open(leases_file, encoding="utf-8") as in_fp:
        content = json.load(in_fp)
    return [str(n) for n in content.get("leases", [])]


def _write(leases_file: pl.Path, names: list[str]) -> None:
    with open(leases_file, "w", encoding="utf-8") as out_fp:
        out_fp.write(json.dumps({"leases": names}, indent=4))


def load(artifacts_dir: pl.Path) -> list[str]:
    """Return names of recorded leases."""
    if not artifacts_dir.exists():
        return []
    with _get_lock(artifacts_dir):
        return _read(get_leases_file(artifacts_dir))


def add(artifacts_dir: pl.Path, name: str) -> None:
    """Record an acquired lease."""
    artifacts_dir.mkdir(parents=True, exist_ok=True)
    leases_file = get_leases_file(artifacts_dir)
    with _get_lock(artifacts_dir):
        names = _read(leases_file)
        if name in names:
            return
        names.append(name)
        _write(leases_file, names)
    LOGGER.debug(f"Recorded lease '{name}' in '{leases_file}'.")


def remove(artifacts_dir: pl.Path, name: str) -> None:
    """Forget a released lease."""
    leases_file = get_leases_file(artifacts_dir)
    if not leases_file.exists():
        return
    with _get_lock(artifacts_dir):
        names = [n for n in _read(leases_file) if n != name]
        _write(leases_file, names)
