"""
Tests for the remote mirror (pomouno/storage/remote_sync.py).

The transport is injected, so nothing here touches the network; ``flush()``
drains the queue on the calling thread.
"""

from __future__ import annotations

import http.client
import json
import threading
import urllib.error

from pomouno.storage.gateway import MemoryGateway
from pomouno.storage.local_store import LocalStore
from pomouno.storage.remote_sync import (
    SYNC_FAILED_NOTICE,
    MirroredGateway,
    RemoteMirror,
    disabled_status,
)


class RecordingTransport:
    def __init__(self, fail_with=None):
        self.calls = []
        self.fail_with = fail_with

    def __call__(self, url, payload, timeout_s):
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append((url, json.loads(payload)))


class TestRemoteMirror:
    def test_push_posts_record(self):
        transport = RecordingTransport()
        mirror = RemoteMirror("https://sync.example.com/api/", transport=transport)
        mirror.enqueue("tasks", [{"id": "t1"}])
        assert mirror.flush() == 1
        url, body = transport.calls[0]
        assert url == "https://sync.example.com/api/records/tasks"
        assert body["key"] == "tasks"
        assert body["value"] == [{"id": "t1"}]
        status = mirror.status()
        assert status.pushed == 1
        assert status.notice is None

    def test_failure_is_counted_not_raised(self):
        transport = RecordingTransport(fail_with=urllib.error.URLError("offline"))
        mirror = RemoteMirror("https://sync.example.com", transport=transport)
        mirror.enqueue("sessions", [])
        mirror.flush()
        status = mirror.status()
        assert status.failures == 1
        assert status.pushed == 0
        assert "offline" in status.last_error
        assert status.notice == SYNC_FAILED_NOTICE

    def test_full_queue_drops(self):
        mirror = RemoteMirror("https://sync.example.com", max_queue=1, transport=RecordingTransport())
        mirror.enqueue("a", 1)
        mirror.enqueue("b", 2)
        status = mirror.status()
        assert status.dropped == 1
        assert status.pending == 1
        assert status.notice == SYNC_FAILED_NOTICE

    def test_thread_drains_on_stop(self):
        transport = RecordingTransport()
        mirror = RemoteMirror("https://sync.example.com", transport=transport)
        mirror.start()
        mirror.enqueue("settings", {"work_duration": 30})
        mirror.stop()
        mirror.join(timeout=5)
        assert not mirror.is_alive()
        assert [c[1]["key"] for c in transport.calls] == ["settings"]

    def test_transport_protocol_error_keeps_thread_alive(self):
        class FlakyTransport(RecordingTransport):
            def __init__(self):
                super().__init__()
                self.first_done = threading.Event()

            def __call__(self, url, payload, timeout_s):
                if not self.first_done.is_set():
                    self.first_done.set()
                    raise http.client.BadStatusLine("garbage")
                super().__call__(url, payload, timeout_s)

        transport = FlakyTransport()
        mirror = RemoteMirror("https://sync.example.com", transport=transport)
        mirror.start()
        mirror.enqueue("tasks", [])
        assert transport.first_done.wait(timeout=5)
        mirror.enqueue("sessions", [])
        mirror.stop()
        mirror.join(timeout=5)
        status = mirror.status()
        assert [c[1]["key"] for c in transport.calls] == ["sessions"]
        assert status.failures == 1
        assert status.pushed == 1
        assert "BadStatusLine" in status.last_error
        assert status.notice == SYNC_FAILED_NOTICE

    def test_disabled_status(self):
        status = disabled_status()
        assert status.enabled is False
        assert status.notice is None


class TestMirroredGateway:
    def test_local_write_survives_remote_failure(self):
        local = MemoryGateway()
        mirror = RemoteMirror("https://sync.example.com",
                              transport=RecordingTransport(fail_with=OSError("refused")))
        store = LocalStore(MirroredGateway(local, mirror))
        store.set_onboarding_shown()
        mirror.flush()
        assert local.get("onboarding_shown") is True
        assert store.onboarding_shown() is True
        assert mirror.status().failures == 1

    def test_delete_is_mirrored_as_null(self):
        transport = RecordingTransport()
        mirror = RemoteMirror("https://sync.example.com", transport=transport)
        gateway = MirroredGateway(MemoryGateway(), mirror)
        gateway.set("tasks", [])
        gateway.delete("tasks")
        mirror.flush()
        assert [c[1]["value"] for c in transport.calls] == [[], None]
        assert gateway.get("tasks") is None
