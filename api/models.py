"""
API request and response models for the account service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models carry no business rules: required-field, email and password
checks live in auth/validation.py so every caller (HTTP or not) gets the same
messages. Pydantic only enforces JSON types here.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from auth.models import TokenPair, UserView

# Identity fields are trimmed. Passwords and tokens are taken exactly as sent.
Trimmed = Annotated[str, StringConstraints(strip_whitespace=True)]

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    email: Trimmed = ""
    password: str = ""


class LogoutRequest(BaseModel):
    """Request body for POST /auth/logout. token is the refresh token."""

    token: str = ""


class RefreshRequest(BaseModel):
    """Request body for POST /auth/refresh.

    identifier is the account's email or username.
    """

    identifier: Trimmed = ""
    refresh_token: str = ""


class RegisterRequest(BaseModel):
    """Request body for POST /user/create."""

    username: Trimmed = ""
    email: Trimmed = ""
    password: str = ""
    name: Trimmed = ""
    lastname: Trimmed = ""
    age: int = 0


class UserPatchRequest(BaseModel):
    """Request body for PATCH /user/update/{id}.

    Omitted or null fields are left unchanged. Empty strings are ignored too.
    """

    username: Optional[Trimmed] = None
    email: Optional[Trimmed] = None
    password: Optional[str] = None
    name: Optional[Trimmed] = None
    lastname: Optional[Trimmed] = None
    age: Optional[int] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. Never includes the password hash or role."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    name: str
    lastname: str
    age: int

    @classmethod
    def from_view(cls, view: UserView) -> "UserResponse":
        return cls(
            id=view.id,
            username=view.username,
            email=view.email,
            name=view.name,
            lastname=view.lastname,
            age=view.age,
        )


class LoginResponse(BaseModel):
    """Response body for POST /auth/login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    user: UserResponse


class UserTokensResponse(UserResponse):
    """User fields flattened together with a fresh token pair.

    Returned by POST /user/create (201) and POST /auth/refresh.
    """

    access_token: str
    refresh_token: str

    @classmethod
    def from_parts(cls, view: UserView, tokens: TokenPair) -> "UserTokensResponse":
        return cls(
            **UserResponse.from_view(view).model_dump(),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class UserActionResponse(MessageResponse):
    """Confirmation for PATCH /user/update/{id} and DELETE /user/{id}."""

    user_id: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health.

    components maps each probed dependency to "ok" or "error".
    """

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
