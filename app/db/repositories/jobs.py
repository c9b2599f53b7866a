from datetime import datetime
from typing import Optional, Sequence

from sqlmodel import select

from app.db.repositories.base import BaseRepository

from app.db.models.jobs import JobStatus, NotificationJob

class NotificationJobRepository(BaseRepository[NotificationJob]):
    model = NotificationJob

    def get_by_dedupe_key(self, dedupe_key: str) -> Optional[NotificationJob]:
        stmt = select(NotificationJob).where(NotificationJob.dedupe_key == dedupe_key)
        return self.session.exec(stmt).first()

    def list_pending(self, now: datetime, limit: int = 10) -> Sequence[NotificationJob]:
        """Jobs PENDING dont l'heure est venue et qui n'ont pas épuisé leurs tentatives."""
        stmt = (
            select(NotificationJob)
            .where(
                NotificationJob.status == JobStatus.PENDING,
                NotificationJob.run_at <= now,
                NotificationJob.attempts < NotificationJob.max_attempts,
            )
            .order_by(NotificationJob.run_at.asc(), NotificationJob.id.asc())
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def mark_processing(self, job: NotificationJob) -> NotificationJob:
        return self.update(job, status=JobStatus.PROCESSING, attempts=job.attempts + 1)

    def mark_completed(self, job: NotificationJob, now: datetime) -> NotificationJob:
        return self.update(job, status=JobStatus.COMPLETED, completed_at=now, error=None)

    def mark_failed(self, job: NotificationJob, error: str) -> NotificationJob:
        """Repasse en PENDING tant qu'il reste des tentatives, sinon FAILED."""
        status = JobStatus.FAILED if job.attempts >= job.max_attempts else JobStatus.PENDING
        return self.update(job, status=status, error=error[:1000])
