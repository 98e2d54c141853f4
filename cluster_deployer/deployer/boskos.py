"""Client for the Boskos resource broker.

Boskos hands out leases on shared resources (here GCP projects) to concurrently running jobs.
A lease is kept alive by periodic heartbeats. When heartbeats stop, Boskos eventually reclaims
the resource, so every acquired lease gets its own background heartbeat thread that runs until
the lease is released or the caller sets the shared `heartbeat_close` event.

HTTP API used:

* `POST /acquire?type=<type>&state=free&dest=busy&owner=<owner>` - 404 when no resource is free
* `POST /update?name=<name>&owner=<owner>&state=busy` - heartbeat
* `POST /release?name=<name>&owner=<owner>&dest=dirty`
"""

import dataclasses
import logging
import threading
import time
import typing as tp
import urllib.parse

import requests

from cluster_deployer.deployer import common
from cluster_deployer.utils import configuration
from cluster_deployer.utils import framework_log
from cluster_deployer.utils import http_client

LOGGER = logging.getLogger(__name__)

STATE_FREE = "free"
STATE_BUSY = "busy"
STATE_DIRTY = "dirty"

HeartbeatFailureCallback = tp.Callable[[str, Exception], None]


@dataclasses.dataclass(frozen=True, order=True)
class Resource:
    name: str
    type: str
    state: str
    owner: str


@dataclasses.dataclass
class _Lease:
    resource: Resource
    stopped: threading.Event
    thread: threading.Thread | None = None


def log_heartbeat_failure(name: str, exc: Exception) -> None:
    """Default heartbeat failure callback - log and record the failure."""
    LOGGER.warning(f"[Boskos] Update of '{name}' failed: {exc}")
    framework_log.framework_logger().warning(f"Boskos heartbeat for '{name}' failed: {exc}")


class BoskosClient:
    """Utility class for leasing resources from Boskos via REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        owner: str,
        poll_interval: float = configuration.BOSKOS_POLL_INTERVAL_SECONDS,
        heartbeat_interval: float = configuration.BOSKOS_HEARTBEAT_INTERVAL_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.owner = owner
        self.poll_interval = poll_interval
        self.heartbeat_interval = heartbeat_interval
        self._leases: dict[str, _Lease] = {}
        self._leases_lock = threading.Lock()

    @property
    def acquired(self) -> list[str]:
        """Names of the resources that are currently leased by this client."""
        with self._leases_lock:
            return list(self._leases)

    def _post(self, path: str, params: dict[str, str]) -> requests.Response:
        url = f"{self.base_url}/{path}"
        return http_client.get_session().post(url, params=params, timeout=30)

    def _acquire_once(self, resource_type: str) -> Resource | None:
        """Try to acquire a free resource, return `None` when no resource is available."""
        response = self._post(
            "acquire",
            {"type": resource_type, "state": STATE_FREE, "dest": STATE_BUSY, "owner": self.owner},
        )
        if response.status_code == requests.codes.not_found:
            return None
        response.raise_for_status()
        data = response.json()
        return Resource(
            name=data["name"],
            type=data.get("type") or resource_type,
            state=data.get("state") or STATE_BUSY,
            owner=data.get("owner") or self.owner,
        )

    def acquire(
        self,
        resource_type: str,
        *,
        timeout: float,
        heartbeat_close: threading.Event,
        on_heartbeat_failure: HeartbeatFailureCallback | None = None,
    ) -> Resource:
        """Acquire a resource of the given type, waiting up to `timeout` seconds.

        On success, start heartbeating the lease in background. The heartbeat stops when the
        lease is released or when `heartbeat_close` is set. Heartbeat failures are reported to
        `on_heartbeat_failure`.
        """
        deadline = time.monotonic() + timeout
        while True:
            try:
                resource = self._acquire_once(resource_type)
            except (requests.RequestException, ValueError, KeyError) as exc:
                msg = f"Boskos failed to acquire '{resource_type}' resource: {exc}"
                raise common.AcquisitionError(msg) from exc

            if resource:
                break

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                msg = f"Timed out after {timeout}s waiting for a free '{resource_type}' resource"
                raise common.AcquisitionError(msg)

            LOGGER.debug(f"[Boskos] No free '{resource_type}' resource, retrying.")
            time.sleep(min(self.poll_interval, remaining))

        lease = _Lease(resource=resource, stopped=threading.Event())
        lease.thread = threading.Thread(
            target=self._heartbeat,
            kwargs={
                "lease": lease,
                "heartbeat_close": heartbeat_close,
                "on_failure": on_heartbeat_failure or log_heartbeat_failure,
            },
            name=f"boskos-heartbeat-{resource.name}",
            daemon=True,
        )
        with self._leases_lock:
            self._leases[resource.name] = lease
        lease.thread.start()

        return resource

    def _heartbeat(
        self,
        *,
        lease: _Lease,
        heartbeat_close: threading.Event,
        on_failure: HeartbeatFailureCallback,
    ) -> None:
        name = lease.resource.name
        while not lease.stopped.wait(self.heartbeat_interval):
            if heartbeat_close.is_set():
                LOGGER.debug(f"[Boskos] Heartbeat for '{name}' closed.")
                return
            try:
                response = self._post(
                    "update", {"name": name, "owner": self.owner, "state": STATE_BUSY}
                )
                response.raise_for_status()
            except requests.RequestException as exc:
                on_failure(name, exc)

    def release(self, name: str, *, dest: str = STATE_DIRTY) -> None:
        """Release the leased resource and stop its heartbeat."""
        with self._leases_lock:
            lease = self._leases.pop(name, None)
        if lease:
            lease.stopped.set()

        try:
            response = self._post("release", {"name": name, "owner": self.owner, "dest": dest})
            response.raise_for_status()
        except requests.RequestException as exc:
            msg = f"Boskos failed to release '{name}': {exc}"
            raise common.AcquisitionError(msg) from exc

        LOGGER.info(f"Released '{name}' to Boskos.")

    def release_all(self) -> list[str]:
        """Release all resources leased by this client, return names that failed to release."""
        failed = []
        for name in self.acquired:
            try:
                self.release(name)
            except common.AcquisitionError:
                LOGGER.exception(f"Failed to release '{name}'.")
                failed.append(name)
        return failed


def new_client(
    location: str, *, owner: str = configuration.JOB_NAME, **kwargs: tp.Any
) -> BoskosClient:
    """Create a Boskos client for the given location."""
    parsed = urllib.parse.urlparse(location)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        msg = f"Invalid Boskos location '{location}'"
        raise common.AcquisitionError(msg)
    if not owner:
        msg = "Boskos owner cannot be empty"
        raise common.AcquisitionError(msg)
    return BoskosClient(location, owner=owner, **kwargs)
