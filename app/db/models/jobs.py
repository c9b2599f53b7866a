from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlmodel import Field
from sqlalchemy import Column, JSON

from app.db.models.base import BaseModelDB
from app.utils.time import utcnow


class JobType(str, Enum):
    SEND_INVITE_EMAIL = "SEND_INVITE_EMAIL"
    SEND_REMINDER_EMAIL = "SEND_REMINDER_EMAIL"
    SEND_CONFIRMATION_EMAIL = "SEND_CONFIRMATION_EMAIL"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class NotificationJob(BaseModelDB, table=True):
    """File d'événements de notification consommée par le processeur de jobs."""

    __tablename__ = "notification_job"

    type: JobType = Field(index=True, nullable=False)
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    status: JobStatus = Field(default=JobStatus.PENDING, index=True, nullable=False)
    attempts: int = Field(default=0, nullable=False)
    max_attempts: int = Field(default=3, nullable=False)

    run_at: datetime = Field(default_factory=utcnow, index=True)
    completed_at: Optional[datetime] = Field(default=None)
    error: Optional[str] = Field(default=None)

    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    # ex: "reminder:{game_id}:{user_id}" => un seul rappel par (joueur, partie)
    dedupe_key: Optional[str] = Field(default=None, unique=True, index=True)
