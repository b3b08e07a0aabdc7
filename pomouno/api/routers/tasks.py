"""
/tasks — plain, recurring and spaced-repetition tasks.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from ...api.schemas import TaskCompletionOut, TaskIn, TaskOut, TaskPatch
from ...scheduling.tasks import is_due_today, recurring_config, task_progress

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _get_tasks(request: Request):
    return request.app.state.tasks


def task_out(task) -> TaskOut:
    return TaskOut(
        **task.to_dict(),
        progress=task_progress(task),
        due_today=is_due_today(task),
    )


@router.get("", response_model=List[TaskOut])
def list_tasks(include_archived: bool = True, tasks=Depends(_get_tasks)):
    return [task_out(t) for t in tasks.list(include_archived=include_archived)]


@router.get("/due-today", response_model=List[TaskOut])
def due_today(tasks=Depends(_get_tasks)):
    return [task_out(t) for t in tasks.due_today()]


@router.post("", response_model=TaskOut, status_code=201)
def create_task(req: TaskIn, tasks=Depends(_get_tasks)):
    if req.recurring is not None and req.spaced_repetition:
        raise HTTPException(
            status_code=422, detail="A task cannot be both recurring and spaced-repetition"
        )
    recurring = None
    if req.recurring is not None:
        r = req.recurring
        recurring = recurring_config(
            r.pattern,
            r.interval,
            days_of_week=tuple(r.days_of_week),
            day_of_month=r.day_of_month,
            weekly_pattern=r.weekly_pattern,
            monthly_pattern=r.monthly_pattern,
            end_date=r.end_date,
        )
    task = tasks.create(
        req.title,
        recurring=recurring,
        spaced_repetition=req.spaced_repetition,
        description=req.description,
        estimated_sessions=req.estimated_sessions,
        priority=req.priority,
        category=req.category,
        tags=req.tags,
        auto_complete=req.auto_complete,
    )
    return task_out(task)


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: str, tasks=Depends(_get_tasks)):
    task = tasks.get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task_out(task)


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(task_id: str, patch: TaskPatch, tasks=Depends(_get_tasks)):
    task = tasks.update(task_id, patch.model_dump(exclude_unset=True))
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task_out(task)


@router.delete("/{task_id}")
def delete_task(task_id: str, tasks=Depends(_get_tasks)):
    if not tasks.delete(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "removed"}


@router.post("/{task_id}/complete", response_model=TaskCompletionOut)
def complete_task(task_id: str, tasks=Depends(_get_tasks)):
    """Complete the task; a second same-day completion of a repeating task answers ``changed: false``."""
    result = tasks.complete(task_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Task not found")
    task, changed = result
    return TaskCompletionOut(changed=changed, task=task_out(task))


@router.post("/{task_id}/uncomplete", response_model=TaskOut)
def uncomplete_task(task_id: str, tasks=Depends(_get_tasks)):
    task = tasks.uncomplete(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task_out(task)
