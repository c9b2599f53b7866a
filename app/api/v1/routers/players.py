from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status

from app.api.v1.dependencies import (
    get_access_token_from_bearer,
    get_auth_service,
    get_player_service,
)
from app.api.v1.errors import http_error
from app.core.errors import SquaresError
from app.features.authentication.services import AuthService
from app.features.players.schemas import PlayerOut, PlayerUpdateIn, PlayerUpdateOut
from app.features.players.services import PlayerService


router = APIRouter(
    prefix="/games/{game_id}/players",
    tags=["players"],
    responses={404: {"description": "Not Found"}},
)


@router.get(
    "",
    summary="Roster de la partie (manager / co-manager)",
    response_model=List[PlayerOut],
)
def list_players(
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: PlayerService = Depends(get_player_service),
):
    user = auth_svc.resolve_user(access_token)
    try:
        return svc.list_players(game_id, user_id=user.id)
    except SquaresError as e:
        raise http_error(e)


@router.patch(
    "/{user_id}",
    summary="Changer le rôle, bloquer / débloquer, ou libérer les cases d'un joueur",
    response_model=PlayerUpdateOut,
    responses={403: {"description": "Forbidden"}},
)
def update_player(
    payload: PlayerUpdateIn,
    game_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: PlayerService = Depends(get_player_service),
):
    caller = auth_svc.resolve_user(access_token)
    try:
        return svc.update_player(
            game_id,
            user_id,
            user_id=caller.id,
            action=payload.action,
            role=payload.role,
        )
    except SquaresError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete(
    "/{user_id}",
    summary="Retirer un joueur (ses cases réservées sont libérées)",
    response_model=PlayerUpdateOut,
    responses={403: {"description": "Forbidden"}},
)
def remove_player(
    game_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: PlayerService = Depends(get_player_service),
):
    caller = auth_svc.resolve_user(access_token)
    try:
        released = svc.remove_player(game_id, user_id, user_id=caller.id)
    except SquaresError as e:
        raise http_error(e)
    return {"user_id": user_id, "released_squares": released}
