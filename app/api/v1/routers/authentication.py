from fastapi import APIRouter, Depends, status

from app.api.v1.dependencies import get_auth_service, get_access_token_from_bearer
from app.features.authentication.services import AuthService
from app.features.authentication.schemas import SignUpIn, SignInIn, TokenOut
from app.features.users.schemas import UserOut

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={401: {"description": "Unauthorized"}},
)

@router.post(
    "/sign-up",
    summary="Créer un compte joueur / manager",
    description="Le nom d'utilisateur est normalisé en minuscules. L'e-mail sert aux invitations et rappels.",
    status_code=status.HTTP_201_CREATED,
    response_model=UserOut,
    responses={409: {"description": "Username or email already used"}},
)
def sign_up(payload: SignUpIn, svc: AuthService = Depends(get_auth_service)):
    return svc.sign_up(payload)


@router.post(
    "/sign-in",
    summary="Obtenir un access token",
    description="À passer ensuite en `Authorization: Bearer <token>` sur toutes les routes de parties.",
    response_model=TokenOut,
)
def sign_in(payload: SignInIn, svc: AuthService = Depends(get_auth_service)):
    return svc.sign_in(payload)


@router.get(
    "/me",
    summary="Profil du porteur du token",
    response_model=UserOut,
    responses={404: {"description": "User not found"}},
)
def me(
    access_token: str = Depends(get_access_token_from_bearer),
    svc: AuthService = Depends(get_auth_service),
):
    return svc.resolve_user(access_token)
