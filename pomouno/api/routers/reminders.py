"""
/reminders — break reminders, per-break surfacing and acknowledgements.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import (
    AcknowledgeIn,
    CompletionOut,
    ReminderIn,
    ReminderOut,
    ReminderPatch,
    SurfaceIn,
)

router = APIRouter(prefix="/reminders", tags=["reminders"])


def _get_reminders(request: Request):
    return request.app.state.reminders


def _get_timer(request: Request):
    return request.app.state.timer


def _out(service, reminder) -> ReminderOut:
    return ReminderOut(**reminder.to_dict(), display=service.display(reminder))


def _session_id(given, timer) -> str:
    session_id = given or timer.snapshot().session_id
    if not session_id:
        raise HTTPException(status_code=409, detail="No break session in progress")
    return session_id


@router.get("", response_model=List[ReminderOut])
def list_reminders(service=Depends(_get_reminders)):
    return [_out(service, r) for r in service.list()]


@router.post("", response_model=ReminderOut, status_code=201)
def create_reminder(req: ReminderIn, service=Depends(_get_reminders)):
    data = req.model_dump(exclude_none=True)
    reminder = service.create(data.pop("title"), data.pop("description"), data.pop("break_type"), **data)
    return _out(service, reminder)


@router.patch("/{reminder_id}", response_model=ReminderOut)
def update_reminder(reminder_id: str, patch: ReminderPatch, service=Depends(_get_reminders)):
    reminder = service.update(reminder_id, patch.model_dump(exclude_unset=True))
    if reminder is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return _out(service, reminder)


@router.delete("/{reminder_id}")
def delete_reminder(reminder_id: str, service=Depends(_get_reminders)):
    if not service.delete(reminder_id):
        raise HTTPException(status_code=404, detail="Reminder not found")
    return {"status": "removed"}


@router.post("/surface", response_model=List[ReminderOut])
def surface(req: SurfaceIn, service=Depends(_get_reminders), timer=Depends(_get_timer)):
    """Reminders to show on this break. Repeated calls for one break return the same set."""
    session_id = _session_id(req.session_id, timer)
    return [_out(service, r) for r in service.surface(req.break_type, session_id)]


@router.post("/{reminder_id}/acknowledge", response_model=CompletionOut, status_code=201)
def acknowledge(
    reminder_id: str,
    req: AcknowledgeIn,
    service=Depends(_get_reminders),
    timer=Depends(_get_timer),
):
    session_id = _session_id(req.session_id, timer)
    completion = service.acknowledge(
        reminder_id, session_id, req.break_type, req.user_interaction
    )
    if completion is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return CompletionOut(**completion.to_dict())
