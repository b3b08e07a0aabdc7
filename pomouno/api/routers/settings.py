"""
/settings — read and update user-tunable timer settings.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...api.schemas import SettingsPatch
from ...settings import DEFAULTS

router = APIRouter(prefix="/settings", tags=["settings"])


def _get_settings_store(request: Request):
    return request.app.state.settings_store


@router.get("")
def read_settings(store=Depends(_get_settings_store)):
    """Return current settings with their defaults for reference."""
    return {"settings": store.get().to_dict(), "defaults": DEFAULTS}


@router.put("")
def write_settings(patch: SettingsPatch, store=Depends(_get_settings_store)):
    """Apply a partial update; an idle timer picks up new durations immediately."""
    data = {k: v for k, v in patch.model_dump().items() if v is not None}
    return {"settings": store.update(data).to_dict()}
