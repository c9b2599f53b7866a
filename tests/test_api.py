from app.core.config import settings


GAME_PAYLOAD = {
    "name": "Office Pool",
    "team_home": "Kansas City",
    "team_away": "Philadelphia",
    "game_date": "2027-02-07T23:30:00",
    "max_squares_per_player": 10,
    "reservation_hours": 24,
}


def _sign_up_and_in(client, username):
    r = client.post(
        "/api/v1/auth/sign-up",
        json={"username": username, "password": "long-enough-pw", "display_name": username.title(), "email": f"{username}@example.com"},
    )
    assert r.status_code == 201, r.text
    r = client.post("/api/v1/auth/sign-in", json={"username": username, "password": "long-enough-pw"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def _cells(*pairs):
    return {"cells": [{"row": r, "col": c} for r, c in pairs]}


# ---------- auth ----------

def test_sign_up_sign_in_and_me(client):
    headers = _sign_up_and_in(client, "alice")
    r = client.get("/api/v1/auth/me", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["username"] == "alice"
    assert body["email"] == "alice@example.com"
    assert "hashed_password" not in body


def test_duplicate_username_and_bad_credentials(client):
    _sign_up_and_in(client, "alice")
    r = client.post("/api/v1/auth/sign-up", json={"username": "alice", "password": "long-enough-pw"})
    assert r.status_code == 409
    r = client.post("/api/v1/auth/sign-in", json={"username": "alice", "password": "nope-nope-nope"})
    assert r.status_code == 401


def test_usernames_are_case_insensitive_and_emails_unique(client):
    _sign_up_and_in(client, "alice")
    r = client.post("/api/v1/auth/sign-in", json={"username": "Alice", "password": "long-enough-pw"})
    assert r.status_code == 200
    r = client.post(
        "/api/v1/auth/sign-up",
        json={"username": "alice2", "password": "long-enough-pw", "email": "ALICE@example.com"},
    )
    assert r.status_code == 409


def test_routes_require_a_bearer_token(client):
    assert client.get("/api/v1/games/me").status_code in (401, 403)
    r = client.get("/api/v1/games/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


# ---------- scénario complet ----------

def test_end_to_end_pool(client, sender):
    manager = _sign_up_and_in(client, "manager")
    bob = _sign_up_and_in(client, "bob")
    carol = _sign_up_and_in(client, "carol")

    r = client.post("/api/v1/games", json=GAME_PAYLOAD, headers=manager)
    assert r.status_code == 201, r.text
    game = r.json()
    game_id = game["id"]
    assert game["status"] == "OPEN"
    assert game["password_protected"] is False

    r = client.get(f"/api/v1/games/join/{game['entry_code']}")
    assert r.status_code == 200
    assert r.json()["available_squares"] == 100

    # Bob réserve 3 cases
    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((0, 0), (0, 1), (0, 2)), headers=bob)
    assert r.status_code == 200, r.text
    grid = r.json()
    assert len(grid) == 100
    bob_ids = [s["id"] for s in grid if s["player_name"] == "Bob"]
    assert len(bob_ids) == 3

    # Carol tente une case de Bob : 409 avec la liste des cases en conflit
    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((0, 2), (5, 5)), headers=carol)
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "CELL_UNAVAILABLE"
    assert r.json()["detail"]["cells"] == [{"row": 0, "col": 2}]

    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((5, 5)), headers=carol)
    assert r.status_code == 200

    # Bob ne peut pas confirmer
    r = client.post(f"/api/v1/games/{game_id}/confirm", json={"square_ids": bob_ids}, headers=bob)
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "NOT_MANAGER"

    # le manager confirme 2 cases de Bob
    r = client.post(f"/api/v1/games/{game_id}/confirm", json={"square_ids": bob_ids[:2]}, headers=manager)
    assert r.status_code == 200
    assert r.json() == {"confirmed_count": 2}

    # roster
    r = client.get(f"/api/v1/games/{game_id}/players", headers=manager)
    assert r.status_code == 200
    roster = {p["username"]: p for p in r.json()}
    assert roster["bob"]["reserved_count"] == 1
    assert roster["bob"]["confirmed_count"] == 2
    assert roster["carol"]["reserved_count"] == 1
    assert roster["manager"]["is_manager"] is True

    # verrouillage
    r = client.patch(f"/api/v1/games/{game_id}", json={"action": "lock"}, headers=manager)
    assert r.status_code == 200, r.text
    locked = r.json()
    assert locked["status"] == "LOCKED"
    assert sorted(locked["row_numbers"]) == list(range(10))
    assert sorted(locked["col_numbers"]) == list(range(10))

    r = client.post(f"/api/v1/games/{game_id}/lock", headers=manager)
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "ALREADY_LOCKED"

    # plus de réservation après verrouillage
    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((9, 9)), headers=carol)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "GAME_NOT_JOINABLE"

    # les e-mails de confirmation partent via la file
    r = client.post("/api/v1/cron/process-jobs")
    assert r.status_code == 200
    assert r.json()["processed"] == 1
    assert [e.to for e in sender.sent] == ["bob@example.com"]


def test_claim_validation_errors(client):
    manager = _sign_up_and_in(client, "manager")
    game_id = client.post("/api/v1/games", json=GAME_PAYLOAD, headers=manager).json()["id"]

    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((1, 1), (1, 1)), headers=manager)
    assert r.status_code == 422
    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((10, 1)), headers=manager)
    assert r.status_code == 422
    r = client.post(f"/api/v1/games/{game_id}/squares", json={"cells": []}, headers=manager)
    assert r.status_code == 422


def test_patch_rejects_null_settings_and_keeps_failed_patch_unsaved(client):
    manager = _sign_up_and_in(client, "manager")
    game_id = client.post("/api/v1/games", json=GAME_PAYLOAD, headers=manager).json()["id"]

    assert client.patch(f"/api/v1/games/{game_id}", json={"payout_q1": None}, headers=manager).status_code == 422
    assert client.patch(f"/api/v1/games/{game_id}", json={"name": None}, headers=manager).status_code == 422

    assert client.post(f"/api/v1/games/{game_id}/lock", headers=manager).status_code == 200
    r = client.patch(f"/api/v1/games/{game_id}", json={"name": "Renamed pool", "action": "lock"}, headers=manager)
    assert r.status_code == 409
    assert client.get(f"/api/v1/games/{game_id}", headers=manager).json()["name"] == GAME_PAYLOAD["name"]


def test_quota_error_payload(client):
    manager = _sign_up_and_in(client, "manager")
    bob = _sign_up_and_in(client, "bob")
    game_id = client.post(
        "/api/v1/games", json={**GAME_PAYLOAD, "max_squares_per_player": 2}, headers=manager
    ).json()["id"]

    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((0, 0), (0, 1), (0, 2)), headers=bob)
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["code"] == "QUOTA_EXCEEDED"
    assert detail["max_squares"] == 2


def test_password_protected_game_over_http(client):
    manager = _sign_up_and_in(client, "manager")
    bob = _sign_up_and_in(client, "bob")
    game_id = client.post(
        "/api/v1/games", json={**GAME_PAYLOAD, "access_password": "open-sesame"}, headers=manager
    ).json()["id"]

    r = client.get(f"/api/v1/games/{game_id}/squares", headers=bob)
    assert r.status_code == 403

    r = client.post(f"/api/v1/games/{game_id}/access", json={"password": "wrong"}, headers=bob)
    assert r.status_code == 401

    r = client.post(f"/api/v1/games/{game_id}/access", json={"password": "open-sesame"}, headers=bob)
    assert r.status_code == 200
    game_access = {**bob, "X-Game-Access": r.json()["access_token"]}

    assert client.get(f"/api/v1/games/{game_id}/squares", headers=game_access).status_code == 200
    r = client.post(f"/api/v1/games/{game_id}/join", headers=game_access)
    assert r.status_code == 200
    assert r.json()["role"] == "PLAYER"


def test_player_management_over_http(client):
    manager = _sign_up_and_in(client, "manager")
    bob = _sign_up_and_in(client, "bob")
    game_id = client.post("/api/v1/games", json=GAME_PAYLOAD, headers=manager).json()["id"]
    bob_id = client.get("/api/v1/auth/me", headers=bob).json()["id"]

    client.post(f"/api/v1/games/{game_id}/squares", json=_cells((3, 3), (3, 4)), headers=bob)

    r = client.patch(f"/api/v1/games/{game_id}/players/{bob_id}", json={"action": "block"}, headers=manager)
    assert r.status_code == 200
    assert r.json()["blocked"] is True

    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((3, 5)), headers=bob)
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "PLAYER_BLOCKED"

    r = client.patch(f"/api/v1/games/{game_id}/players/{bob_id}", json={"action": "set_role"}, headers=manager)
    assert r.status_code == 422

    r = client.delete(f"/api/v1/games/{game_id}/players/{bob_id}", headers=manager)
    assert r.status_code == 200
    assert r.json()["released_squares"] == 2


# ---------- cron / interne ----------

def test_cron_requires_secret_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    assert client.post("/api/v1/cron/release-expired").status_code == 401
    r = client.post("/api/v1/cron/release-expired", headers={"Authorization": "Bearer wrong"})
    assert r.status_code == 401

    r = client.post("/api/v1/cron/release-expired", headers={"Authorization": "Bearer s3cret"})
    assert r.status_code == 200
    assert r.json() == {"released_count": 0, "games_checked": 0, "games_failed": 0}

    r = client.post("/api/v1/cron/send-reminders", headers={"Authorization": "Bearer s3cret"})
    assert r.json() == {"reminders_queued": 0, "games_checked": 0}


def test_cron_is_closed_in_prod_without_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", None)
    monkeypatch.setattr(settings, "ENV", "prod")
    assert client.post("/api/v1/cron/process-jobs").status_code == 401


def test_activation_hook(client, monkeypatch):
    monkeypatch.setattr(settings, "GAMES_REQUIRE_ACTIVATION", True)
    manager = _sign_up_and_in(client, "manager")
    game_id = client.post("/api/v1/games", json=GAME_PAYLOAD, headers=manager).json()["id"]

    r = client.post(f"/api/v1/games/{game_id}/squares", json=_cells((0, 0)), headers=manager)
    assert r.status_code == 400

    r = client.post(f"/api/v1/internal/games/{game_id}/activate")
    assert r.status_code == 200
    assert r.json()["status"] == "OPEN"

    r = client.post(f"/api/v1/internal/games/{game_id}/activate")
    assert r.status_code == 409


def test_user_token_helper_matches_sign_in(client, make_user, auth_headers):
    user = make_user("erin")
    r = client.get("/api/v1/auth/me", headers=auth_headers(user))
    assert r.status_code == 200
    assert r.json()["username"] == "erin"
