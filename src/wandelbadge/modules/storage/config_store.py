"""
Durable single-slot storage for the shared badge configuration.

Writes are queued and drained by one writer task, so two saves can never
interleave on the same file: each job starts only after the previous one
finished. Every file write goes through a temporary file and `os.replace`,
leaving the slot holding some complete earlier configuration even if the
process dies mid-write. Failures are logged and the queue moves on; the
registry never hears about them.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from ...badge.errors import PersistenceError
from ...core.contracts import BaseModule, HealthStatus, ModuleConfig

logger = logging.getLogger(__name__)

Writer = Callable[[Path, dict[str, Any]], None]


def write_json_atomic(path: Path, config: dict[str, Any]) -> None:
    """Serialise ``config`` to ``path`` via a sibling temp file."""
    try:
        payload = json.dumps(config, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"Config is not JSON serialisable: {exc}") from exc
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise PersistenceError(f"Unable to write {path}: {exc}") from exc


class ConfigStore(BaseModule):
    """Serialised, fire-and-forget JSON persistence for one configuration."""

    name = "modules.storage.config_store"

    def __init__(self, path: str | Path | None = None, *, writer: Writer | None = None) -> None:
        super().__init__()
        self._path = Path(path) if path else Path("data") / "config.json"
        self._writer = writer or write_json_atomic
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._written_total = 0
        self._failed_total = 0
        self._last_error: str | None = None

    @property
    def path(self) -> Path:
        return self._path

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        path = config.options.get("path")
        if path:
            self._path = Path(path)

    def load(self) -> dict[str, Any] | None:
        """Return the stored configuration, or None when absent or unreadable."""
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Error reading config file %s: %s", self._path, exc)
            return None
        if not isinstance(data, dict):
            logger.error("Config file %s does not contain an object; ignoring it.", self._path)
            return None
        return data

    def enqueue(self, config: Mapping[str, Any]) -> None:
        """Queue a durable write of ``config`` behind any pending ones."""
        self._queue.put_nowait(dict(config))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def flush(self) -> None:
        """Wait until every queued write has landed or failed."""
        if self._task is None:
            logger.debug("ConfigStore flush requested while writer is not running.")
            return
        await self._queue.join()

    async def start(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Unable to create data directory %s: %s", self._path.parent, exc)
        if self._task is None:
            self._task = asyncio.create_task(self._run_writer(), name="config-store-writer")
        logger.info("ConfigStore persisting badge configuration to %s", self._path)

    async def stop(self) -> None:
        if self._task is None:
            return
        await self.flush()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("ConfigStore stopped.")

    async def health(self) -> HealthStatus:
        status = "healthy" if self._last_error is None else "degraded"
        return HealthStatus(
            status=status,
            details={
                "path": str(self._path),
                "pending": self.pending,
                "written_total": self._written_total,
                "failed_total": self._failed_total,
                "last_error": self._last_error,
            },
        )

    async def _run_writer(self) -> None:
        while True:
            config = await self._queue.get()
            try:
                await asyncio.to_thread(self._writer, self._path, config)
            except Exception as exc:
                self._failed_total += 1
                self._last_error = str(exc)
                logger.exception("Error saving config to %s", self._path)
            else:
                self._written_total += 1
                self._last_error = None
            finally:
                self._queue.task_done()


__all__ = ["ConfigStore", "write_json_atomic"]
