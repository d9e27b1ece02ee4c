"""
api/routes/auth.py -- Session endpoints: login, logout, token refresh.

Routes:
  POST /auth/login    -- email + password; returns a token pair and the user
  POST /auth/logout   -- revokes the given refresh token
  POST /auth/refresh  -- trades a live refresh token for a new pair

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  AuthService.login() equalizes timing for unknown emails -- do not inline
  a store lookup + verify_password() here.
  Cache-Control: no-store on every response that carries tokens.
"""

from fastapi import APIRouter, Request, Response

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    UserResponse,
    UserTokensResponse,
)
from auth.service import AuthService
from core.config import get_settings

# Auth policy: all three routes are public. The credential being presented
# (password or refresh token) is the authentication.
router = APIRouter()


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(get_settings().login_rate_limit)  # below @router: FastAPI must register the wrapped endpoint
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password.

    Unknown email and wrong password both produce 401 "bad_credentials" so
    the response never reveals whether an account exists.
    """
    auth: AuthService = request.app.state.auth_service
    result = auth.login(body.email, body.password)
    _no_store(response)
    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserResponse.from_view(result.user),
    )


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, body: LogoutRequest) -> MessageResponse:
    """Revoke a refresh token. A second logout with the same token is 401."""
    auth: AuthService = request.app.state.auth_service
    auth.logout(body.token)
    return MessageResponse(message="Logged out successfully")


@router.post("/auth/refresh", response_model=UserTokensResponse)
def refresh(request: Request, response: Response, body: RefreshRequest) -> UserTokensResponse:
    """Rotate the caller's refresh token. The presented token stops working."""
    auth: AuthService = request.app.state.auth_service
    result = auth.refresh(body.identifier, body.refresh_token)
    _no_store(response)
    return UserTokensResponse.from_parts(result.user, result.tokens)
