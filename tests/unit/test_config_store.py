from __future__ import annotations

import json
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pytest

from wandelbadge.badge.errors import PersistenceError
from wandelbadge.core.contracts import ModuleConfig
from wandelbadge.modules.storage.config_store import ConfigStore, write_json_atomic


@pytest.mark.asyncio
async def test_store_persists_latest_config(tmp_path: Path) -> None:
    path = tmp_path / "data" / "config.json"
    store = ConfigStore()
    await store.configure(ModuleConfig(options={"path": str(path)}))
    await store.start()

    store.enqueue({"km": 1})
    store.enqueue({"km": 2})
    await store.flush()
    await store.stop()

    assert json.loads(path.read_text(encoding="utf-8")) == {"km": 2}
    assert store.load() == {"km": 2}
    health = await store.health()
    assert health.details["written_total"] == 2


@pytest.mark.asyncio
async def test_writes_are_serialized(tmp_path: Path) -> None:
    active = 0
    peak = 0
    order: list[int] = []
    lock = threading.Lock()

    def writer(path: Path, config: Mapping[str, Any]) -> None:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        order.append(config["km"])
        with lock:
            active -= 1

    store = ConfigStore(tmp_path / "config.json", writer=writer)
    await store.start()
    for km in range(5):
        store.enqueue({"km": km})
    await store.stop()

    assert order == [0, 1, 2, 3, 4]
    assert peak == 1


@pytest.mark.asyncio
async def test_failed_write_does_not_block_later_writes(tmp_path: Path) -> None:
    written: list[dict[str, Any]] = []

    def writer(path: Path, config: Mapping[str, Any]) -> None:
        if config.get("fail"):
            raise PersistenceError("disk full")
        written.append(dict(config))

    store = ConfigStore(tmp_path / "config.json", writer=writer)
    await store.start()
    store.enqueue({"fail": True})
    store.enqueue({"km": 3})
    await store.flush()

    health = await store.health()
    await store.stop()

    assert written == [{"km": 3}]
    assert health.details["failed_total"] == 1
    assert health.status == "healthy"


def test_load_missing_file_returns_none(tmp_path: Path) -> None:
    assert ConfigStore(tmp_path / "absent.json").load() is None


def test_load_corrupt_file_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert ConfigStore(path).load() is None


def test_load_non_object_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert ConfigStore(path).load() is None


def test_write_json_atomic_replaces_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"km": 1}', encoding="utf-8")

    write_json_atomic(path, {"km": 5, "title": "Wandel"})

    assert json.loads(path.read_text(encoding="utf-8")) == {"km": 5, "title": "Wandel"}
    assert [p.name for p in tmp_path.iterdir()] == ["config.json"]


def test_write_json_atomic_wraps_errors(tmp_path: Path) -> None:
    with pytest.raises(PersistenceError):
        write_json_atomic(tmp_path / "config.json", {"bad": object()})
