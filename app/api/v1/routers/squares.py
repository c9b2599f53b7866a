from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.responses import StreamingResponse

from app.api.v1.dependencies import (
    get_access_token_from_bearer,
    get_auth_service,
    get_game_access_token,
    get_live_feed_service,
    get_square_service,
)
from app.api.v1.errors import http_error
from app.core.errors import SquaresError
from app.features.authentication.services import AuthService
from app.features.live.services import LiveFeedService
from app.features.squares.schemas import ClaimIn, ConfirmIn, ConfirmOut, SquareOut
from app.features.squares.services import SquareService


router = APIRouter(
    prefix="/games/{game_id}",
    tags=["squares"],
    responses={404: {"description": "Not Found"}},
)

# -----------------------------
# Grid
# -----------------------------
@router.get(
    "/squares",
    summary="Les 100 cases de la grille (ordre ligne puis colonne)",
    response_model=List[SquareOut],
)
def list_squares(
    game_id: int = Path(..., ge=1),
    game_access_token: Optional[str] = Depends(get_game_access_token),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: SquareService = Depends(get_square_service),
):
    user = auth_svc.resolve_user(access_token)
    try:
        return svc.list_grid(game_id, user_id=user.id, game_access_token=game_access_token)
    except SquaresError as e:
        raise http_error(e)

# -----------------------------
# Claim (réservation)
# -----------------------------
@router.post(
    "/squares",
    summary="Réserver une ou plusieurs cases (tout ou rien)",
    response_model=List[SquareOut],
    responses={
        400: {"description": "Partie non ouverte ou quota dépassé"},
        403: {"description": "Joueur bloqué ou accès refusé"},
        409: {"description": "Case(s) déjà prise(s)"},
    },
)
def claim_squares(
    payload: ClaimIn,
    game_id: int = Path(..., ge=1),
    game_access_token: Optional[str] = Depends(get_game_access_token),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: SquareService = Depends(get_square_service),
):
    user = auth_svc.resolve_user(access_token)
    try:
        return svc.reserve_squares(
            game_id,
            user_id=user.id,
            cells=payload.as_tuples(),
            game_access_token=game_access_token,
        )
    except SquaresError as e:
        raise http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

# -----------------------------
# Confirm (paiement reçu)
# -----------------------------
@router.post(
    "/confirm",
    summary="Confirmer le paiement de cases réservées (manager / co-manager)",
    response_model=ConfirmOut,
    responses={403: {"description": "Forbidden"}},
)
def confirm_squares(
    payload: ConfirmIn,
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: SquareService = Depends(get_square_service),
):
    user = auth_svc.resolve_user(access_token)
    try:
        return {"confirmed_count": svc.confirm_squares(game_id, user_id=user.id, square_ids=payload.square_ids)}
    except SquaresError as e:
        raise http_error(e)

# -----------------------------
# Live view (SSE)
# -----------------------------
@router.get(
    "/stream",
    summary="Flux temps réel de la grille (Server-Sent Events)",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/event-stream": {}}}, 403: {"description": "Forbidden"}},
)
def stream_squares(
    request: Request,
    game_id: int = Path(..., ge=1),
    access_token: str = Depends(get_access_token_from_bearer),
    auth_svc: AuthService = Depends(get_auth_service),
    svc: SquareService = Depends(get_square_service),
    live: LiveFeedService = Depends(get_live_feed_service),
):
    user = auth_svc.resolve_user(access_token)
    try:
        svc.ensure_viewer(game_id, user_id=user.id)
    except SquaresError as e:
        raise http_error(e)

    return StreamingResponse(
        live.stream(game_id, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
