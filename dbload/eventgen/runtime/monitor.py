"""
Schema source change monitor.

Polls the schema source a generated module was built from and reports when
its bytes no longer match the content seen at startup. The process is
expected to exit and be relaunched (after regenerating) when that happens.

States:
    BASELINE: no successful read yet
    WATCHING: baseline digest recorded, no difference seen
    CHANGED:  at least one poll differed from the baseline

Invariants:
    - The baseline is taken from the first successful read and never
      replaced, so every later poll that differs notifies again
    - Identical bytes never notify
    - Read failures leave the state untouched and are reported on their
      own channel, never as a change
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path

from ..errors import MonitorReadError
from ..schema.source import source_digest

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    BASELINE = "baseline"
    WATCHING = "watching"
    CHANGED = "changed"


class SchemaChangeMonitor:
    """Watches one schema source file by content digest."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.state = MonitorState.BASELINE
        self.polls = 0
        self.notifications = 0
        self._baseline: str | None = None

    @property
    def baseline(self) -> str | None:
        return self._baseline

    def _read_digest(self) -> str:
        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise MonitorReadError(
                f"error reading type mappings file {self.path}: {e}", path=str(self.path)
            ) from e
        return source_digest(data)

    def poll(self) -> bool:
        """Read the source once.

        Returns:
            True if the content differs from the baseline

        Raises:
            MonitorReadError: If the file cannot be read
        """
        digest = self._read_digest()
        self.polls += 1

        if self._baseline is None:
            self._baseline = digest
            self.state = MonitorState.WATCHING
            logger.info(
                f"Recorded schema source baseline {digest[:12]}",
                extra={"path": str(self.path)},
            )
            return False

        if digest == self._baseline:
            return False

        self.state = MonitorState.CHANGED
        self.notifications += 1
        logger.warning(
            f"Schema source changed ({self._baseline[:12]} -> {digest[:12]})",
            extra={"path": str(self.path)},
        )
        return True

    def _poll_reporting(self, errors: asyncio.Queue, changes: asyncio.Queue) -> None:
        try:
            changed = self.poll()
        except MonitorReadError as e:
            errors.put_nowait(e)
            return
        if changed:
            changes.put_nowait(self.path)

    async def watch(
        self,
        interval: float,
        errors: asyncio.Queue,
        changes: asyncio.Queue,
    ) -> None:
        """Poll until cancelled.

        The baseline is read immediately, then the file is polled every
        interval seconds.

        Args:
            interval: Seconds between polls
            errors: Receives MonitorReadError instances
            changes: Receives the watched path once per differing poll
        """
        logger.info(f"Watching schema source {self.path} every {interval}s")
        try:
            self._poll_reporting(errors, changes)
            while True:
                await asyncio.sleep(interval)
                self._poll_reporting(errors, changes)
        except asyncio.CancelledError as e:
            reason = e.args[0] if e.args else "cancelled"
            logger.info(f"Schema monitor stopped: {reason}")
            raise
