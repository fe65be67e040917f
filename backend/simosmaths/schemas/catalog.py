from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import Field, field_validator

from .base import ApiModel


class Exercise(ApiModel):
    """Public exercise; the solution never leaves the server."""

    id: str
    chapter_id: Optional[str] = None
    title: str
    question: str
    difficulty: Optional[int] = None
    chapter_title: Optional[str] = None
    subject: Optional[str] = None
    level: Optional[str] = None

    @field_validator("id", "chapter_id", mode="before")
    @classmethod
    def _stringify(cls, value):
        return str(value) if value is not None else value


class Video(ApiModel):
    id: str
    chapter_id: Optional[str] = None
    title: str
    url: str
    duration_seconds: Optional[int] = None
    chapter_title: Optional[str] = None
    subject: Optional[str] = None
    level: Optional[str] = None

    @field_validator("id", "chapter_id", mode="before")
    @classmethod
    def _stringify(cls, value):
        return str(value) if value is not None else value


class ExerciseSubmitRequest(ApiModel):
    child_id: UUID
    exercise_id: UUID
    user_answer: str = ""
    time_spent: int = Field(default=0, ge=0)


class ExerciseSubmitResponse(ApiModel):
    success: bool = True
    correct: bool
    score: int
    feedback: str
    data: Optional[dict[str, Any]] = None


class ExerciseHistoryItem(ApiModel):
    id: str
    exercise_id: str
    exercise_title: Optional[str] = None
    user_answer: Optional[str] = None
    correct: bool
    score: int
    time_spent: int
    created_at: Optional[datetime] = None

    @field_validator("id", "exercise_id", mode="before")
    @classmethod
    def _stringify(cls, value):
        return str(value) if value is not None else value


class VideoProgressRequest(ApiModel):
    child_id: UUID
    video_id: UUID
    watched_seconds: int = Field(default=0, ge=0)
    completed: bool = False
    last_position: int = Field(default=0, ge=0)


class VideoProgress(ApiModel):
    child_id: str
    video_id: str
    watched_seconds: int
    completed: bool
    completed_at: Optional[datetime] = None
    last_position: int

    @field_validator("child_id", "video_id", mode="before")
    @classmethod
    def _stringify(cls, value):
        return str(value) if value is not None else value
