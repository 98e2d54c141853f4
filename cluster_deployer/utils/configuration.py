"""Deployer environment configuration."""

import os
import pathlib as pl

LAUNCH_PATH = pl.Path.cwd()


def _get_int(name: str, default: int) -> int:
    value = os.environ.get(name) or ""
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        msg = f"Invalid {name}: {value}"
        raise RuntimeError(msg) from exc


# Resource broker (Boskos)
BOSKOS_LOCATION = (
    os.environ.get("BOSKOS_LOCATION") or "http://boskos.test-pods.svc.cluster.local."
)
BOSKOS_ACQUIRE_TIMEOUT_SECONDS = _get_int("BOSKOS_ACQUIRE_TIMEOUT_SECONDS", 300)
BOSKOS_HEARTBEAT_INTERVAL_SECONDS = _get_int("BOSKOS_HEARTBEAT_INTERVAL_SECONDS", 300)
BOSKOS_POLL_INTERVAL_SECONDS = _get_int("BOSKOS_POLL_INTERVAL_SECONDS", 10)
BOSKOS_PROJECTS_REQUESTED = _get_int("BOSKOS_PROJECTS_REQUESTED", 1)
if BOSKOS_PROJECTS_REQUESTED < 1:
    msg = f"Invalid BOSKOS_PROJECTS_REQUESTED '{BOSKOS_PROJECTS_REQUESTED}': must be >= 1"
    raise RuntimeError(msg)

# Owner of the leases as recorded by the broker
JOB_NAME = os.environ.get("JOB_NAME") or "cluster-deployer"

# Fallback root of the Kubernetes checkout with the `cluster/` scripts
KUBE_ROOT = os.environ.get("KUBE_ROOT") or ""

# Resolve ARTIFACTS
ARTIFACTS_DIR = pl.Path(os.environ.get("ARTIFACTS") or LAUNCH_PATH / "_artifacts")
ARTIFACTS_DIR = ARTIFACTS_DIR.expanduser().resolve()

NUM_NODES = _get_int("NUM_NODES", 3)

GCE_ZONE = os.environ.get("KUBE_GCE_ZONE") or "us-central1-b"
GCE_NETWORK = os.environ.get("KUBE_GCE_NETWORK") or "default"
