from fastapi import HTTPException, status

from app.core.errors import (
    AccessDenied,
    AlreadyLocked,
    CellUnavailable,
    GameNotJoinable,
    InvalidPassword,
    InvalidTransition,
    NotFound,
    NotManager,
    PlayerBlocked,
    QuotaExceeded,
    SquaresError,
)

# Exception métier -> code HTTP
HTTP_STATUS = {
    GameNotJoinable: status.HTTP_400_BAD_REQUEST,
    QuotaExceeded: status.HTTP_400_BAD_REQUEST,
    PlayerBlocked: status.HTTP_403_FORBIDDEN,
    NotManager: status.HTTP_403_FORBIDDEN,
    AccessDenied: status.HTTP_403_FORBIDDEN,
    CellUnavailable: status.HTTP_409_CONFLICT,
    AlreadyLocked: status.HTTP_409_CONFLICT,
    InvalidTransition: status.HTTP_409_CONFLICT,
    InvalidPassword: status.HTTP_401_UNAUTHORIZED,
    NotFound: status.HTTP_404_NOT_FOUND,
}


def http_error(e: SquaresError) -> HTTPException:
    code = HTTP_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=e.to_detail())
