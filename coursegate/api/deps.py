"""
Shared router dependencies and error mapping.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from coursegate.errors import CoursegateError, InvalidRequestError, NotFoundError, StorageError
from coursegate.service import ProgressService


def get_service(request: Request) -> ProgressService:
    """ProgressService attached to the application at startup."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not initialized")
    return service


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Learner identity supplied by the authentication layer in front of this service."""
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity")
    return user_id


def http_error(error: CoursegateError) -> HTTPException:
    """Map engine errors onto HTTP status codes."""
    if isinstance(error, InvalidRequestError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, StorageError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Progress store unavailable, retry")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
