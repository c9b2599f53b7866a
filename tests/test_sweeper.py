from datetime import datetime

from sqlmodel import select

from app.db.models.jobs import JobType, NotificationJob
from app.db.models.squares import Square, SquareStatus
from app.features.notifications.services import reminder_dedupe_key
from app.features.sweeper.runner import run_sweep


def _statuses(session, game_id):
    session.expire_all()
    return {
        (s.row, s.col): s.status
        for s in session.exec(select(Square).where(Square.game_id == game_id)).all()
    }


def _reminders(session):
    return session.exec(
        select(NotificationJob).where(NotificationJob.type == JobType.SEND_REMINDER_EMAIL)
    ).all()


# ---------- libération ----------

def test_reservation_survives_before_expiry_and_is_released_after(session, services, make_game, make_user, clock):
    game = make_game(reservation_hours=24)
    player = make_user()
    services["squares"].reserve_squares(game.id, user_id=player.id, cells=[(2, 2)])

    clock.advance(hours=23)
    result = services["sweeper"].release_expired()
    assert result["released_count"] == 0
    assert _statuses(session, game.id)[(2, 2)] == SquareStatus.RESERVED

    clock.advance(hours=2)
    result = services["sweeper"].release_expired()
    assert result == {"released_count": 1, "games_checked": 1, "games_failed": 0}

    session.expire_all()
    square = session.exec(select(Square).where(Square.game_id == game.id, Square.row == 2, Square.col == 2)).one()
    assert square.status == SquareStatus.AVAILABLE
    assert square.player_id is None
    assert square.reserved_at is None


def test_release_is_idempotent(services, make_game, make_user, clock):
    game = make_game(reservation_hours=1)
    player = make_user()
    services["squares"].reserve_squares(game.id, user_id=player.id, cells=[(0, 0), (0, 1)])

    clock.advance(hours=2)
    assert services["sweeper"].release_expired()["released_count"] == 2
    assert services["sweeper"].release_expired()["released_count"] == 0


def test_auto_release_disabled_keeps_reservations(session, services, make_game, make_user, clock):
    game = make_game(reservation_hours=1, auto_release_enabled=False)
    player = make_user()
    services["squares"].reserve_squares(game.id, user_id=player.id, cells=[(6, 6)])

    clock.advance(hours=100)
    result = services["sweeper"].release_expired()
    assert result["games_checked"] == 0
    assert _statuses(session, game.id)[(6, 6)] == SquareStatus.RESERVED


def test_locked_games_are_not_swept(session, services, make_game, make_user, manager, clock):
    game = make_game(reservation_hours=1)
    player = make_user()
    services["squares"].reserve_squares(game.id, user_id=player.id, cells=[(6, 6)])
    services["games"].lock_grid(game.id, user_id=manager.id)

    clock.advance(hours=5)
    services["sweeper"].release_expired()
    assert _statuses(session, game.id)[(6, 6)] == SquareStatus.RESERVED


def test_release_uses_each_game_reservation_window(session, services, make_game, make_user, clock):
    short = make_game(reservation_hours=2)
    long = make_game(reservation_hours=48)
    player = make_user()
    services["squares"].reserve_squares(short.id, user_id=player.id, cells=[(0, 0)])
    services["squares"].reserve_squares(long.id, user_id=player.id, cells=[(0, 0)])

    clock.advance(hours=3)
    result = services["sweeper"].release_expired()
    assert result["released_count"] == 1
    assert _statuses(session, short.id)[(0, 0)] == SquareStatus.AVAILABLE
    assert _statuses(session, long.id)[(0, 0)] == SquareStatus.RESERVED


# ---------- rappels ----------

def test_hours_remaining_rounds_up(services):
    sweeper = services["sweeper"]
    reserved_at = datetime(2027, 2, 1, 0, 0)
    now = datetime(2027, 2, 1, 18, 30)
    assert sweeper.hours_remaining(reserved_at, 24, now) == 6


def test_reminder_queued_once_inside_window(session, services, make_game, make_user, clock):
    game = make_game(reservation_hours=24)
    player = make_user("dana")
    services["squares"].reserve_squares(game.id, user_id=player.id, cells=[(1, 1), (1, 2)])

    clock.advance(hours=10)  # 14 h restantes
    assert services["sweeper"].queue_reminders()["reminders_queued"] == 0

    clock.advance(hours=9)  # 5 h restantes
    assert services["sweeper"].queue_reminders() == {"reminders_queued": 1, "games_checked": 1}

    clock.advance(hours=1)  # 4 h restantes : toujours dans la fenêtre, mais déjà prévenu
    assert services["sweeper"].queue_reminders()["reminders_queued"] == 0

    jobs = _reminders(session)
    assert len(jobs) == 1
    assert jobs[0].dedupe_key == reminder_dedupe_key(game.id, player.id)
    assert jobs[0].payload["square_count"] == 2
    assert jobs[0].payload["hours_remaining"] == 5
    assert jobs[0].payload["email"] == "dana@example.com"


def test_no_reminder_outside_window_or_without_auto_release(session, services, make_game, make_user, clock):
    manual = make_game(reservation_hours=24, auto_release_enabled=False)
    auto = make_game(reservation_hours=24)
    player = make_user()
    services["squares"].reserve_squares(manual.id, user_id=player.id, cells=[(0, 0)])
    services["squares"].reserve_squares(auto.id, user_id=player.id, cells=[(0, 0)])

    clock.advance(hours=21)  # 3 h restantes : trop tard
    assert services["sweeper"].queue_reminders()["reminders_queued"] == 0
    assert _reminders(session) == []


def test_no_reminder_for_player_without_email(session, services, make_game, make_user, clock):
    game = make_game(reservation_hours=24)
    player = make_user(email="")
    services["squares"].reserve_squares(game.id, user_id=player.id, cells=[(0, 0)])

    clock.advance(hours=19)
    assert services["sweeper"].queue_reminders()["reminders_queued"] == 0


# ---------- runner ----------

def test_run_sweep_releases_queues_and_sends(session, make_game, make_user, services, sender):
    game = make_game(reservation_hours=1)
    player = make_user()
    services["squares"].reserve_squares(game.id, user_id=player.id, cells=[(0, 0)])

    stats = run_sweep(session, sender=sender)
    assert stats["games_checked"] == 1
    assert stats["games_failed"] == 0
    assert set(stats) >= {"released_count", "reminders_queued", "jobs"}
    assert stats["jobs"]["failed"] == 0
