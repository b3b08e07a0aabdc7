"""
Remote Mirror: best-effort, fire-and-forget replication of local writes to a
remote sync endpoint.

The local gateway is authoritative. Writes land locally first; the mirror
queues a copy and a background thread POSTs it. A failed POST is logged and
counted, never raised, and never rolls the local write back.

Run with a gateway:
    mirror = RemoteMirror("https://sync.example.com/api")
    mirror.start()
    gateway = MirroredGateway(SqliteGateway(path), mirror)
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..domain.dates import now_ms

logger = logging.getLogger(__name__)

SYNC_FAILED_NOTICE = "Sync partially failed. Your local data is safe."

Transport = Callable[[str, bytes, float], None]


def _post_json(url: str, payload: bytes, timeout_s: float) -> None:
    req = urllib.request.Request(
        url,
        data=payload,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(req, timeout=timeout_s):
        pass


@dataclass
class SyncStatus:
    enabled: bool
    pushed: int
    failures: int
    dropped: int
    pending: int
    last_error: Optional[str]

    @property
    def notice(self) -> Optional[str]:
        """User-facing, non-blocking message; None when everything went through."""
        return SYNC_FAILED_NOTICE if (self.failures or self.dropped) else None


class RemoteMirror(threading.Thread):
    """
    Background thread that drains a bounded queue of (key, value) writes and
    POSTs each one to ``{sync_url}/records/{key}``.
    """

    def __init__(
        self,
        sync_url: str,
        timeout_s: float = 3.0,
        max_queue: int = 500,
        transport: Optional[Transport] = None,
    ):
        super().__init__(daemon=True, name="PomoUno-RemoteMirror")
        self.sync_url = sync_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport: Transport = transport or _post_json
        self._queue: "queue.Queue[Optional[dict]]" = queue.Queue(maxsize=max_queue)
        self._stop_event = threading.Event()
        self.pushed = 0
        self.failures = 0
        self.dropped = 0
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(self, key: str, value: Any) -> None:
        item = {"key": key, "value": value, "timestamp": now_ms()}
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            self.dropped += 1
            logger.warning("Sync queue full, dropping mirror of %r", key)

    # ------------------------------------------------------------------
    # Thread lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        self._stop_event.set()
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                item = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            if item is None:
                break
            self._push(item)
        self.flush()                        # final flush on shutdown

    def flush(self) -> int:
        """Synchronously push everything queued; returns the number of items handled."""
        handled = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return handled
            if item is not None:
                self._push(item)
                handled += 1

    def status(self) -> SyncStatus:
        return SyncStatus(
            enabled=True,
            pushed=self.pushed,
            failures=self.failures,
            dropped=self.dropped,
            pending=self._queue.qsize(),
            last_error=self.last_error,
        )

    # ------------------------------------------------------------------
    # HTTP push
    # ------------------------------------------------------------------

    def _push(self, item: dict) -> bool:
        url = f"{self.sync_url}/records/{item['key']}"
        try:
            payload = json.dumps(item).encode()
            self._transport(url, payload, self.timeout_s)
        except (urllib.error.URLError, OSError, ValueError) as e:
            self.failures += 1
            self.last_error = str(e)
            logger.warning("Remote sync of %r failed: %s", item["key"], e)
            return False
        except Exception as e:
            self.failures += 1
            self.last_error = f"{type(e).__name__}: {e}"
            logger.exception("Unexpected error mirroring %r", item["key"])
            return False
        self.pushed += 1
        return True


def disabled_status() -> SyncStatus:
    return SyncStatus(enabled=False, pushed=0, failures=0, dropped=0, pending=0, last_error=None)


class MirroredGateway:
    """Local gateway whose writes are additionally mirrored to a RemoteMirror."""

    def __init__(self, local, mirror: RemoteMirror):
        self.local = local
        self.mirror = mirror

    def get(self, key: str) -> Optional[Any]:
        return self.local.get(key)

    def set(self, key: str, value: Any) -> None:
        self.local.set(key, value)
        self.mirror.enqueue(key, value)

    def delete(self, key: str) -> None:
        self.local.delete(key)
        self.mirror.enqueue(key, None)
