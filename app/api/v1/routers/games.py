from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Path, Response

from app.api.v1.dependencies import (
    get_access_token_from_bearer,
    get_auth_service,
    get_game_access_token,
    get_game_service,
    pagination,
)
from app.api.v1.errors import http_error
from app.core.errors import SquaresError
from app.features.authentication.services import AuthService
from app.features.games.schemas import (
    GameAccessIn,
    GameAccessStatusOut,
    GameAccessTokenOut,
    GameCreateIn,
    GameOut,
    GamePasswordIn,
    GameSummaryOut,
    GameUpdateIn,
    InviteIn,
    InviteOut,
    JoinOut,
    LockOut,
)
from app.features.games.services import GameService


router = APIRouter(
    prefix="/games",
    tags=["games"],
    responses={404: {"description": "Not Found"}},
)

# -------- Helpers --------

def _get_user_id(
    access_token: str,
    auth_svc: AuthService,
) -> int:
    return auth_svc.resolve_user_id(access_token)

# -----------------------------
# List mine
# -----------------------------
@router.get(
    "/me",
    summary="Lister mes parties (gérées ou rejointes)",
    response_model=List[GameOut],
)
def list_mine(
    page=Depends(pagination),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    games = svc.list_user_games(user_id, offset=page["offset"], limit=page["limit"])
    return [svc.to_out(g) for g in games]

# -----------------------------
# Public summary by entry code
# -----------------------------
@router.get(
    "/join/{entry_code}",
    summary="Résumé public d'une partie via son code d'entrée",
    response_model=GameSummaryOut,
)
def get_by_entry_code(
    entry_code: str = Path(..., min_length=4, max_length=16),
    svc: GameService = Depends(get_game_service),
):
    try:
        return svc.get_by_entry_code(entry_code)
    except SquaresError as e:
        raise http_error(e)

# -----------------------------
# Create game (manager)
# -----------------------------
@router.post(
    "",
    summary="Créer une partie (grille de 100 cases)",
    status_code=status.HTTP_201_CREATED,
    response_model=GameOut,
)
def create_game(
    payload: GameCreateIn,
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        game = svc.create_game(payload, manager_id=user_id)
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Entry code generation failed")
    return svc.to_out(game)

# -----------------------------
# Detail / update / delete
# -----------------------------
@router.get(
    "/{game_id}",
    summary="Détail d'une partie",
    response_model=GameOut,
    responses={403: {"description": "Forbidden"}},
)
def get_game(
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        return svc.to_out(svc.get_game(game_id, user_id=user_id))
    except SquaresError as e:
        raise http_error(e)


@router.patch(
    "/{game_id}",
    summary="Modifier les réglages ou changer le statut (lock, start, complete, cancel)",
    response_model=GameOut,
    responses={403: {"description": "Forbidden"}, 409: {"description": "Conflict"}},
)
def update_game(
    payload: GameUpdateIn,
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        return svc.to_out(svc.update_game(game_id, payload, user_id=user_id))
    except SquaresError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "/{game_id}/lock",
    summary="Verrouiller la grille et tirer les numéros",
    response_model=LockOut,
    responses={403: {"description": "Forbidden"}, 409: {"description": "Already locked"}},
)
def lock_game(
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        return svc.lock_grid(game_id, user_id=user_id)
    except SquaresError as e:
        raise http_error(e)


@router.delete(
    "/{game_id}",
    summary="Supprimer une partie",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"description": "Forbidden"}},
)
def delete_game(
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        svc.delete_game(game_id, user_id=user_id)
    except SquaresError as e:
        raise http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# -----------------------------
# Password / access / join
# -----------------------------
@router.post(
    "/{game_id}/password",
    summary="Activer / désactiver le mot de passe de la partie",
    response_model=GameAccessStatusOut,
)
def set_password(
    payload: GamePasswordIn,
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        svc.set_password(game_id, user_id=user_id, enabled=payload.enabled, password=payload.password)
        return svc.access_status(game_id, user_id=user_id)
    except SquaresError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get(
    "/{game_id}/access",
    summary="Le viewer a-t-il accès à la partie ?",
    response_model=GameAccessStatusOut,
)
def get_access(
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        return svc.access_status(game_id, user_id=user_id)
    except SquaresError as e:
        raise http_error(e)


@router.post(
    "/{game_id}/access",
    summary="Échanger le mot de passe contre un jeton d'accès (header X-Game-Access)",
    response_model=GameAccessTokenOut,
    responses={401: {"description": "Incorrect password"}},
)
def grant_access(
    payload: GameAccessIn,
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        return svc.grant_access(game_id, user_id=user_id, password=payload.password)
    except SquaresError as e:
        raise http_error(e)


@router.post(
    "/{game_id}/join",
    summary="Rejoindre une partie OPEN",
    response_model=JoinOut,
)
def join_game(
    game_id: int = Path(..., ge=1),
    game_access_token: Optional[str] = Depends(get_game_access_token),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        return svc.join_game(game_id, user_id=user_id, game_access_token=game_access_token)
    except SquaresError as e:
        raise http_error(e)

# -----------------------------
# Invitations
# -----------------------------
@router.post(
    "/{game_id}/invites",
    summary="Inviter des joueurs par e-mail",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=InviteOut,
)
def invite(
    payload: InviteIn,
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: GameService = Depends(get_game_service),
):
    user_id = _get_user_id(access_token, auth_svc)
    try:
        return {"queued": svc.invite(game_id, user_id=user_id, emails=list(payload.emails))}
    except SquaresError as e:
        raise http_error(e)
