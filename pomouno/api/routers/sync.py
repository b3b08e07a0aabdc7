"""
/sync — remote mirror status and the user-facing notice.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from ...api.schemas import SyncStatusOut
from ...storage.remote_sync import disabled_status

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("", response_model=SyncStatusOut)
def sync_status(request: Request):
    mirror = request.app.state.mirror
    status = mirror.status() if mirror is not None else disabled_status()
    return SyncStatusOut(
        enabled=status.enabled,
        pushed=status.pushed,
        failures=status.failures,
        dropped=status.dropped,
        pending=status.pending,
        last_error=status.last_error,
        notice=status.notice,
    )
