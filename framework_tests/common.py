import threading
import typing as tp

from cluster_deployer.deployer import boskos
from cluster_deployer.deployer import common


def hypothesis_settings(max_examples: int = 100) -> tp.Any:
    import hypothesis

    return hypothesis.settings(
        max_examples=max_examples,
        deadline=None,
        suppress_health_check=(
            hypothesis.HealthCheck.too_slow,
            hypothesis.HealthCheck.function_scoped_fixture,
        ),
    )


class FakeBoskosClient:
    """Stand-in for `boskos.BoskosClient` that hands out projects from a list."""

    def __init__(self, names: tp.Iterable[str], *, fail_on_call: int = 0) -> None:
        self.names = list(names)
        self.fail_on_call = fail_on_call
        self.calls = 0
        self._acquired: list[str] = []
        self.released: list[str] = []

    @property
    def acquired(self) -> list[str]:
        return list(self._acquired)

    def acquire(
        self,
        resource_type: str,
        *,
        timeout: float,
        heartbeat_close: threading.Event,
        on_heartbeat_failure: tp.Any = None,
    ) -> boskos.Resource:
        self.calls += 1
        if self.calls == self.fail_on_call:
            msg = f"Timed out after {timeout}s waiting for a free '{resource_type}' resource"
            raise common.AcquisitionError(msg)
        name = self.names.pop(0)
        self._acquired.append(name)
        return boskos.Resource(name=name, type=resource_type, state="busy", owner="tester")

    def release(self, name: str, *, dest: str = "dirty") -> None:
        if name in self._acquired:
            self._acquired.remove(name)
        self.released.append(name)
