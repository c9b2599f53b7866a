"""
➡️ But : Points d'entrée des tâches planifiées et du hook de facturation.

Protégés par `Authorization: Bearer <CRON_SECRET>` (voir require_cron_secret).
"""

from fastapi import APIRouter, Depends, Path

from app.api.v1.dependencies import (
    get_expiry_sweeper,
    get_game_service,
    get_job_processor,
    require_cron_secret,
)
from app.api.v1.errors import http_error
from app.core.errors import SquaresError
from app.features.games.schemas import GameOut
from app.features.games.services import GameService
from app.features.notifications.services import JobProcessor
from app.features.sweeper.services import ExpirySweeper


router = APIRouter(
    prefix="/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


@router.post("/release-expired", summary="Libérer les réservations expirées")
def release_expired(sweeper: ExpirySweeper = Depends(get_expiry_sweeper)):
    return sweeper.release_expired()


@router.post("/send-reminders", summary="Poser les rappels de paiement (4 à 6 h avant libération)")
def send_reminders(sweeper: ExpirySweeper = Depends(get_expiry_sweeper)):
    return sweeper.queue_reminders()


@router.post("/process-jobs", summary="Envoyer les e-mails en attente")
def process_jobs(processor: JobProcessor = Depends(get_job_processor)):
    return processor.process_pending()


internal_router = APIRouter(
    prefix="/internal",
    tags=["internal"],
    dependencies=[Depends(require_cron_secret)],
)


@internal_router.post(
    "/games/{game_id}/activate",
    summary="Paiement de création confirmé : DRAFT -> OPEN",
    response_model=GameOut,
)
def activate_game(
    game_id: int = Path(..., ge=1),
    svc: GameService = Depends(get_game_service),
):
    try:
        return svc.to_out(svc.activate_game(game_id))
    except SquaresError as e:
        raise http_error(e)
