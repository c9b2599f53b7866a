import pytest

from app.db.models.jobs import JobStatus, JobType
from app.db.repositories.jobs import NotificationJobRepository
from app.features.notifications.senders import LogEmailSender, OutgoingEmail, build_email_sender
from app.features.notifications.services import JobProcessor
from app.features.notifications.templates import DISCLAIMER, render_job_email


class FlakySender:
    def __init__(self, failures: int):
        self.failures = failures
        self.sent = []

    def send(self, email: OutgoingEmail) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("SMTP down")
        self.sent.append(email)


def _processor(session, sender, clock):
    return JobProcessor(job_repo=NotificationJobRepository(session), sender=sender, now_fn=clock)


def test_invite_is_rendered_and_sent(session, services, make_game, manager, sender, clock):
    game = make_game()
    services["games"].invite(game.id, user_id=manager.id, emails=["friend@example.com"])

    result = _processor(session, sender, clock).process_pending()

    assert result == {"processed": 1, "failed": 0}
    assert len(sender.sent) == 1
    email = sender.sent[0]
    assert email.to == "friend@example.com"
    assert game.name in email.subject
    assert "The Manager" in email.body
    assert game.entry_code in email.body


def test_failed_job_is_retried_then_succeeds(session, services, make_game, manager, clock):
    game = make_game()
    services["games"].invite(game.id, user_id=manager.id, emails=["friend@example.com"])
    sender = FlakySender(failures=1)
    processor = _processor(session, sender, clock)

    assert processor.process_pending() == {"processed": 0, "failed": 1}
    job = NotificationJobRepository(session).list(limit=10)[0]
    assert job.status == JobStatus.PENDING
    assert job.attempts == 1
    assert "SMTP down" in job.error

    assert processor.process_pending() == {"processed": 1, "failed": 0}
    session.refresh(job)
    assert job.status == JobStatus.COMPLETED
    assert job.attempts == 2
    assert job.completed_at == clock.now


def test_job_fails_for_good_after_three_attempts(session, services, make_game, manager, clock):
    game = make_game()
    services["games"].invite(game.id, user_id=manager.id, emails=["friend@example.com"])
    processor = _processor(session, FlakySender(failures=10), clock)

    for _ in range(3):
        assert processor.process_pending()["failed"] == 1
    assert processor.process_pending() == {"processed": 0, "failed": 0}

    job = NotificationJobRepository(session).list(limit=10)[0]
    assert job.status == JobStatus.FAILED
    assert job.attempts == 3


def test_one_failure_does_not_block_the_batch(session, services, make_game, manager, clock):
    game = make_game()
    services["games"].invite(game.id, user_id=manager.id, emails=["a@example.com", "b@example.com"])
    sender = FlakySender(failures=1)

    assert _processor(session, sender, clock).process_pending() == {"processed": 1, "failed": 1}
    assert [e.to for e in sender.sent] == ["b@example.com"]


def test_confirmation_email_carries_disclaimer():
    email = render_job_email(
        JobType.SEND_CONFIRMATION_EMAIL,
        {
            "email": "bob@example.com",
            "game_name": "Pool",
            "game_url": "http://localhost/games/1",
            "player_name": "Bob",
            "square_count": 3,
        },
    )
    assert email.subject == "Payment Confirmed: Pool"
    assert "3 square(s)" in email.body
    assert DISCLAIMER in email.body


def test_incomplete_payload_raises():
    with pytest.raises(KeyError):
        render_job_email(JobType.SEND_REMINDER_EMAIL, {"email": "x@example.com"})


def test_unknown_backend_falls_back_to_log(monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "EMAIL_BACKEND", "carrier-pigeon")
    assert isinstance(build_email_sender(settings), LogEmailSender)
