"""
/timer — drive the Pomodoro state machine.

Transitions never fail: an action that does not apply in the current state
(pausing an idle timer, say) answers ``changed: false`` with the unchanged
timer.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import SessionTypeIn, TimerStateOut, TimerTaskIn, TimerTransitionOut

router = APIRouter(prefix="/timer", tags=["timer"])


def _get_timer(request: Request):
    return request.app.state.timer


def _get_tasks(request: Request):
    return request.app.state.tasks


def _state(timer) -> TimerStateOut:
    return TimerStateOut(**timer.snapshot().to_dict())


def _transition(timer, changed: bool) -> TimerTransitionOut:
    return TimerTransitionOut(changed=changed, timer=_state(timer))


@router.get("", response_model=TimerStateOut)
async def get_timer(timer=Depends(_get_timer)):
    return _state(timer)


@router.post("/start", response_model=TimerTransitionOut)
async def start_timer(timer=Depends(_get_timer)):
    """Start or resume the countdown; the one-second ticker runs until the next transition."""
    return _transition(timer, timer.start())


@router.post("/pause", response_model=TimerTransitionOut)
async def pause_timer(timer=Depends(_get_timer)):
    return _transition(timer, timer.pause())


@router.post("/stop", response_model=TimerTransitionOut)
async def stop_timer(timer=Depends(_get_timer)):
    """Abandon the current session without recording it."""
    return _transition(timer, timer.stop())


@router.post("/reset", response_model=TimerTransitionOut)
async def reset_timer(timer=Depends(_get_timer)):
    return _transition(timer, timer.reset())


@router.post("/type", response_model=TimerTransitionOut)
async def change_type(req: SessionTypeIn, timer=Depends(_get_timer)):
    return _transition(timer, timer.change_session_type(req.phase))


@router.post("/task", response_model=TimerStateOut)
async def associate_task(req: TimerTaskIn, timer=Depends(_get_timer), tasks=Depends(_get_tasks)):
    """Attach a task to the timer (or detach with ``task_id: null``)."""
    if req.task_id is not None and tasks.get(req.task_id) is None:
        raise HTTPException(status_code=404, detail="Task not found")
    timer.associate_task(req.task_id)
    return _state(timer)
