from collections import Counter

import pytest

from app.core.errors import (
    AccessDenied,
    AlreadyLocked,
    GameNotJoinable,
    InvalidPassword,
    InvalidTransition,
    NotManager,
)
from app.core.config import jwt_settings, settings
from app.db.models.games import GameStatus
from app.db.models.jobs import JobType, NotificationJob
from app.db.models.players import PlayerRole
from app.db.models.squares import Square, SquareStatus
from app.features.games.schemas import GameCreateIn, GameUpdateIn
from app.features.games.services import random_digit_permutation
from app.security.tokens import create_game_access_token, is_game_access_token_valid
from sqlmodel import select


# ---------- création ----------

def test_create_game_builds_exactly_one_hundred_squares(session, make_game, manager):
    game = make_game()

    squares = session.exec(select(Square).where(Square.game_id == game.id)).all()
    assert len(squares) == 100
    assert {(s.row, s.col) for s in squares} == {(r, c) for r in range(10) for c in range(10)}
    assert all(s.status == SquareStatus.AVAILABLE for s in squares)

    assert game.status == GameStatus.OPEN
    assert game.manager_id == manager.id
    assert game.row_numbers == [] and game.col_numbers == []
    assert len(game.entry_code) == 8


def test_manager_is_on_the_roster_as_co_manager(services, make_game, manager):
    game = make_game()
    member = services["games"].players.get_membership(game.id, manager.id)
    assert member is not None
    assert member.role == PlayerRole.CO_MANAGER


def test_payouts_must_total_100():
    with pytest.raises(ValueError):
        GameCreateIn(
            name="Bad payouts",
            team_home="A",
            team_away="B",
            game_date="2027-02-07T23:30:00",
            payout_q1=50,
            payout_q2=50,
            payout_q3=50,
            payout_final=50,
        )


def test_games_start_in_draft_when_activation_required(services, make_game, monkeypatch):
    monkeypatch.setattr(settings, "GAMES_REQUIRE_ACTIVATION", True)
    game = make_game()
    assert game.status == GameStatus.DRAFT

    game = services["games"].activate_game(game.id)
    assert game.status == GameStatus.OPEN
    assert game.paid_at is not None

    with pytest.raises(InvalidTransition):
        services["games"].activate_game(game.id)


def test_summary_by_entry_code_is_case_insensitive(services, make_game):
    game = make_game()
    summary = services["games"].get_by_entry_code(game.entry_code.lower())
    assert summary["id"] == game.id
    assert summary["available_squares"] == 100
    assert summary["password_protected"] is False


# ---------- verrouillage ----------

def test_random_permutation_is_a_permutation_of_digits():
    for _ in range(20):
        assert sorted(random_digit_permutation()) == list(range(10))


def test_lock_assigns_two_permutations_once(services, make_game, manager, make_user, broker):
    game = make_game()
    player = make_user()
    services["squares"].reserve_squares(game.id, user_id=player.id, cells=[(0, 0), (1, 1)])

    result = services["games"].lock_grid(game.id, user_id=manager.id)

    assert result["status"] == GameStatus.LOCKED
    assert sorted(result["row_numbers"]) == list(range(10))
    assert sorted(result["col_numbers"]) == list(range(10))
    assert result["unfilled_squares"] == 98
    assert result["locked_at"] is not None

    # statuts des cases inchangés
    grid = services["squares"].grid(game.id)
    assert Counter(s["status"] for s in grid) == {SquareStatus.AVAILABLE: 98, SquareStatus.RESERVED: 2}

    with pytest.raises(AlreadyLocked):
        services["games"].lock_grid(game.id, user_id=manager.id)

    reloaded = services["games"].get_game(game.id, user_id=manager.id)
    assert reloaded.row_numbers == result["row_numbers"]
    assert reloaded.col_numbers == result["col_numbers"]


def test_only_the_manager_can_lock(services, make_game, make_user):
    game = make_game()
    co_manager = make_user()
    services["games"].players.create(game_id=game.id, user_id=co_manager.id, role=PlayerRole.CO_MANAGER)

    with pytest.raises(NotManager):
        services["games"].lock_grid(game.id, user_id=co_manager.id)


def test_lock_is_rejected_for_cancelled_or_draft_games(services, make_game, manager):
    game = make_game()
    services["games"].transition(game.id, "cancel", user_id=manager.id)

    with pytest.raises(GameNotJoinable):
        services["games"].lock_grid(game.id, user_id=manager.id)


def test_lock_is_already_locked_after_start_and_complete(services, make_game, manager):
    game = make_game()
    services["games"].lock_grid(game.id, user_id=manager.id)
    services["games"].transition(game.id, "start", user_id=manager.id)

    with pytest.raises(AlreadyLocked):
        services["games"].lock_grid(game.id, user_id=manager.id)

    services["games"].transition(game.id, "complete", user_id=manager.id)
    with pytest.raises(AlreadyLocked):
        services["games"].lock_grid(game.id, user_id=manager.id)


def test_invalid_transitions(services, make_game, manager):
    game = make_game()
    with pytest.raises(InvalidTransition):
        services["games"].transition(game.id, "start", user_id=manager.id)

    services["games"].lock_grid(game.id, user_id=manager.id)
    services["games"].transition(game.id, "complete", user_id=manager.id)
    with pytest.raises(InvalidTransition):
        services["games"].transition(game.id, "cancel", user_id=manager.id)


def test_patch_action_lock_and_settings(services, make_game, manager):
    game = make_game()
    updated = services["games"].update_game(
        game.id,
        GameUpdateIn(max_squares_per_player=5, action="lock"),
        user_id=manager.id,
    )
    assert updated.max_squares_per_player == 5
    assert updated.status == GameStatus.LOCKED


def test_settings_payouts_checked_against_current_values(services, make_game, manager):
    game = make_game()
    with pytest.raises(ValueError):
        services["games"].update_game(game.id, GameUpdateIn(payout_final=50), user_id=manager.id)


@pytest.mark.parametrize("field", ["name", "payout_q1", "max_squares_per_player", "auto_release_enabled"])
def test_settings_cannot_be_set_to_null(field):
    with pytest.raises(ValueError):
        GameUpdateIn(**{field: None})


def test_price_can_be_cleared(services, make_game, manager):
    game = make_game(price_per_square=5.0)
    updated = services["games"].update_game(
        game.id, GameUpdateIn(price_per_square=None), user_id=manager.id
    )
    assert updated.price_per_square is None


def test_failed_action_discards_settings_from_the_same_patch(session, services, make_game, manager):
    game = make_game()
    services["games"].lock_grid(game.id, user_id=manager.id)

    with pytest.raises(AlreadyLocked):
        services["games"].update_game(
            game.id, GameUpdateIn(name="Renamed pool", action="lock"), user_id=manager.id
        )

    session.expire_all()
    assert services["games"].get_game(game.id, user_id=manager.id).name == "Super Bowl Pool"


def test_failed_transition_discards_settings(session, services, make_game, manager):
    game = make_game()
    with pytest.raises(InvalidTransition):
        services["games"].update_game(
            game.id, GameUpdateIn(max_squares_per_player=3, action="complete"), user_id=manager.id
        )

    session.expire_all()
    assert services["games"].get_game(game.id, user_id=manager.id).max_squares_per_player == 10


# ---------- mot de passe / accès ----------

def test_password_access_token_is_scoped_to_game_and_viewer(services, make_game, manager, make_user):
    game = make_game()
    other_game = make_game()
    viewer = make_user()
    svc = services["games"]

    svc.set_password(game.id, user_id=manager.id, enabled=True, password="open-sesame")
    assert svc.access_status(game.id, user_id=viewer.id) == {"password_required": True, "has_access": False}

    with pytest.raises(InvalidPassword):
        svc.grant_access(game.id, user_id=viewer.id, password="wrong")

    granted = svc.grant_access(game.id, user_id=viewer.id, password="open-sesame")
    token = granted["access_token"]
    assert granted["expires_in"] == int(jwt_settings.game_access_ttl.total_seconds())

    assert is_game_access_token_valid(token, user_id=viewer.id, game_id=game.id, settings=jwt_settings)
    assert not is_game_access_token_valid(token, user_id=viewer.id, game_id=other_game.id, settings=jwt_settings)
    assert not is_game_access_token_valid(token, user_id=manager.id, game_id=game.id, settings=jwt_settings)


def test_protected_game_requires_token_to_join(services, make_game, manager, make_user):
    game = make_game(access_password="open-sesame")
    viewer = make_user()
    svc = services["games"]

    with pytest.raises(AccessDenied):
        svc.join_game(game.id, user_id=viewer.id)

    forged_for_other_game = create_game_access_token(user_id=viewer.id, game_id=game.id + 1, settings=jwt_settings)
    with pytest.raises(AccessDenied):
        svc.join_game(game.id, user_id=viewer.id, game_access_token=forged_for_other_game)

    token = svc.grant_access(game.id, user_id=viewer.id, password="open-sesame")["access_token"]
    joined = svc.join_game(game.id, user_id=viewer.id, game_access_token=token)
    assert joined["role"] == PlayerRole.PLAYER

    # une fois inscrit, plus besoin du jeton
    assert svc.access_status(game.id, user_id=viewer.id)["has_access"] is True


def test_disabling_password_opens_the_game(services, make_game, manager, make_user):
    game = make_game(access_password="open-sesame")
    viewer = make_user()
    services["games"].set_password(game.id, user_id=manager.id, enabled=False, password=None)
    services["games"].join_game(game.id, user_id=viewer.id)


# ---------- invitations / suppression ----------

def test_invites_queue_one_job_per_unique_email(session, services, make_game, manager):
    game = make_game()
    queued = services["games"].invite(
        game.id,
        user_id=manager.id,
        emails=["a@example.com", "A@example.com", "b@example.com"],
    )
    assert queued == 2

    jobs = session.exec(select(NotificationJob).where(NotificationJob.type == JobType.SEND_INVITE_EMAIL)).all()
    assert sorted(j.payload["email"] for j in jobs) == ["a@example.com", "b@example.com"]
    assert all(j.payload["join_url"].endswith(game.entry_code) for j in jobs)


def test_delete_game_removes_squares(session, services, make_game, manager, make_user):
    game = make_game()
    intruder = make_user()
    with pytest.raises(NotManager):
        services["games"].delete_game(game.id, user_id=intruder.id)

    services["games"].delete_game(game.id, user_id=manager.id)
    assert session.exec(select(Square).where(Square.game_id == game.id)).all() == []
