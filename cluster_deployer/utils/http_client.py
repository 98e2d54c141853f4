"""Global HTTP client."""

import requests

from cluster_deployer.utils import configuration

_session = None


def get_session() -> requests.Session:
    """Get a session object."""
    global _session  # noqa: PLW0603

    if _session is None:
        _session = requests.Session()
        _session.headers.update({"User-Agent": f"cluster-deployer/{configuration.JOB_NAME}"})
    return _session


def close_session() -> None:
    """Close the session object, if any."""
    global _session  # noqa: PLW0603

    if _session is not None:
        _session.close()
        _session = None
