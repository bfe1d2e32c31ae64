from fastapi import APIRouter, Depends, Request, Response
import logging

from common.http_errors import api_error
from settings.config import get_settings
from schemas.auth_schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserEnvelope
)
from services.auth import authenticate, change_password, create_session, create_user, end_session
from models import User, UserRole
from api.s3.dependencies import AuthContext, get_uow, require_admin, require_auth
from api.s3.infra.db.uow import UnitOfWork

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _set_session_cookie(response: Response, token: str):
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_days * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


def _user_envelope(user: User) -> UserEnvelope:
    return UserEnvelope(user=user.to_public_dict())


@auth_router.post('/register', response_model=UserEnvelope)
async def register(request: RegisterRequest, response: Response, uow: UnitOfWork = Depends(get_uow)):
    """Create an account and log it in straight away."""
    try:
        user = create_user(uow, request.username, request.password, UserRole(request.role))
        session = create_session(uow, user)
        uow.commit()
    except ValueError as e:
        uow.rollback()
        raise api_error(400, str(e))
    except Exception as e:
        logger.error(f"Registration error: {str(e)}", exc_info=True)
        raise api_error(500, "Registration failed")

    _set_session_cookie(response, session.token)
    return _user_envelope(user)


@auth_router.post('/login', response_model=UserEnvelope)
async def login(request: LoginRequest, response: Response, uow: UnitOfWork = Depends(get_uow)):
    try:
        user = authenticate(uow, request.username, request.password)
        if user is None:
            raise api_error(401, "Invalid username or password")

        session = create_session(uow, user)
        uow.commit()
    except ValueError as e:
        raise api_error(400, str(e))

    logger.info(f"User {user.username} logged in")
    _set_session_cookie(response, session.token)
    return _user_envelope(user)


@auth_router.post('/logout', response_model=MessageResponse)
async def logout(request: Request, response: Response, uow: UnitOfWork = Depends(get_uow)):
    cookie_name = get_settings().session_cookie_name
    if end_session(uow, request.cookies.get(cookie_name)):
        uow.commit()

    response.delete_cookie(cookie_name)
    return MessageResponse(message="Logged out successfully")


@auth_router.get('/me', response_model=UserEnvelope)
async def me(auth: AuthContext = Depends(require_auth)):
    return _user_envelope(auth.user)


@auth_router.post('/change-password', response_model=MessageResponse)
async def update_password(
    request: ChangePasswordRequest,
    auth: AuthContext = Depends(require_admin),
    uow: UnitOfWork = Depends(get_uow)
):
    try:
        change_password(uow, auth.user, request.current_password, request.new_password)
        uow.commit()
    except ValueError as e:
        raise api_error(400, str(e))

    return MessageResponse(message="Password changed successfully")
