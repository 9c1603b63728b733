import pytest

from wandelbadge.core.contracts import BaseModule, HealthStatus, ModuleConfig
from wandelbadge.core.orchestrator import Orchestrator


class _StubModule(BaseModule):
    def __init__(self, name: str, log: list[str], *, fail_stop: bool = False) -> None:
        super().__init__()
        self.name = name
        self._log = log
        self._fail_stop = fail_stop

    async def start(self) -> None:
        self._log.append(f"start:{self.name}")

    async def stop(self) -> None:
        self._log.append(f"stop:{self.name}")
        if self._fail_stop:
            raise RuntimeError("stop failed")

    async def health(self) -> HealthStatus:
        return HealthStatus(status="healthy", details={})


@pytest.mark.asyncio
async def test_orchestrator_starts_in_order_and_stops_in_reverse() -> None:
    log: list[str] = []
    orchestrator = Orchestrator()
    await orchestrator.add_module(_StubModule("store", log), ModuleConfig())
    await orchestrator.add_module(_StubModule("api", log, fail_stop=True), ModuleConfig())

    await orchestrator.start()
    await orchestrator.stop()

    assert log == ["start:store", "start:api", "stop:api", "stop:store"]


@pytest.mark.asyncio
async def test_orchestrator_aggregates_health() -> None:
    orchestrator = Orchestrator()
    module = _StubModule("tests.stub.module", [])
    await orchestrator.add_module(module)

    reports = await orchestrator.health()

    assert reports["tests.stub.module"].status == "healthy"
    assert module.has_bus
