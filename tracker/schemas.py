"""
Pydantic schemas for the tracker API.

Records are passed through without validation, so every field is optional
and unknown fields are kept.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class RecordModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    userId: Optional[Any] = None
    title: Optional[Any] = None


class Habit(RecordModel):
    goal: Optional[Any] = None
    completedDates: Optional[Any] = None


class Task(RecordModel):
    time: Optional[Any] = None
    completed: Optional[Any] = None


class DeleteResponse(BaseModel):
    success: bool


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
