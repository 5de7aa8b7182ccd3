"""
HTTP routes for the habit and task API.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from tracker.dependencies import get_record_store
from tracker.records import RecordKind
from tracker.schemas import DeleteResponse, ErrorResponse, Habit, HealthResponse, Task
from tracker.store import RecordStore

router = APIRouter()

_NOT_FOUND = {404: {"model": ErrorResponse}}


def _update(
    store: RecordStore, kind: RecordKind, record_id: str, payload: Optional[dict]
) -> dict:
    # Unknown ids raise RecordNotFoundError, answered with 404 by the app.
    return store.update(kind, record_id, payload or {})


def _delete(store: RecordStore, kind: RecordKind, record_id: str) -> DeleteResponse:
    store.delete(kind, record_id)
    return DeleteResponse(success=True)


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.get(
    "/habits/{user_id}", response_model=list[Habit], response_model_exclude_unset=True
)
def list_habits(user_id: str, store: RecordStore = Depends(get_record_store)):
    return store.list_by_user(RecordKind.HABIT, user_id)


@router.post("/habits", response_model=Habit, response_model_exclude_unset=True)
def add_habit(
    payload: Optional[dict[str, Any]] = Body(None),
    store: RecordStore = Depends(get_record_store),
):
    """
    Create a habit from `{userId, title, goal}`. Fields are stored as sent.
    """
    return store.create(RecordKind.HABIT, payload or {})


@router.put(
    "/habits/{habit_id}",
    response_model=Habit,
    response_model_exclude_unset=True,
    responses=_NOT_FOUND,
)
def update_habit(
    habit_id: str,
    payload: Optional[dict[str, Any]] = Body(None),
    store: RecordStore = Depends(get_record_store),
):
    return _update(store, RecordKind.HABIT, habit_id, payload)


@router.delete("/habits/{habit_id}", response_model=DeleteResponse)
def delete_habit(habit_id: str, store: RecordStore = Depends(get_record_store)):
    return _delete(store, RecordKind.HABIT, habit_id)


@router.get(
    "/tasks/{user_id}", response_model=list[Task], response_model_exclude_unset=True
)
def list_tasks(user_id: str, store: RecordStore = Depends(get_record_store)):
    return store.list_by_user(RecordKind.TASK, user_id)


@router.post("/tasks", response_model=Task, response_model_exclude_unset=True)
def add_task(
    payload: Optional[dict[str, Any]] = Body(None),
    store: RecordStore = Depends(get_record_store),
):
    """
    Create a task from `{userId, title, time}`; `completed` starts false.
    """
    return store.create(RecordKind.TASK, payload or {})


@router.put(
    "/tasks/{task_id}",
    response_model=Task,
    response_model_exclude_unset=True,
    responses=_NOT_FOUND,
)
def update_task(
    task_id: str,
    payload: Optional[dict[str, Any]] = Body(None),
    store: RecordStore = Depends(get_record_store),
):
    return _update(store, RecordKind.TASK, task_id, payload)


@router.delete("/tasks/{task_id}", response_model=DeleteResponse)
def delete_task(task_id: str, store: RecordStore = Depends(get_record_store)):
    return _delete(store, RecordKind.TASK, task_id)
