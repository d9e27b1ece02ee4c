"""
api/routes/users.py -- Account registration and profile endpoints.

Routes:
  POST   /user/create          -- register; 201 with user fields + tokens
  GET    /user/search?email=   -- find one user by email
  GET    /user[?email=]        -- list all users, or search when email is given
  GET    /user/{id}            -- fetch one user
  PATCH  /user/update/{id}     -- partial update (bearer, owner only)
  DELETE /user/{id}            -- delete account (bearer, owner only)

/user/search is declared before /user/{id} so "search" is never captured as
an id.
"""

from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    RegisterRequest,
    UserActionResponse,
    UserPatchRequest,
    UserResponse,
    UserTokensResponse,
)
from auth.dependencies import get_current_identity
from auth.models import Identity, Registration, UserPatch
from users.service import UserService

# Auth policy:
# - POST   /user/create:       public -- sign-up
# - GET    /user, /user/{id}:  public -- read-only profile data, no hashes
# - PATCH  /user/update/{id}:  requires auth; caller must own the record
# - DELETE /user/{id}:         requires auth; caller must own the record
router = APIRouter()


def _users(request: Request) -> UserService:
    return request.app.state.user_service


@router.post("/user/create", response_model=UserTokensResponse, status_code=201)
def create_user(request: Request, response: Response, body: RegisterRequest) -> UserTokensResponse:
    registered = _users(request).register(Registration(**body.model_dump()))
    response.headers["Cache-Control"] = "no-store"
    return UserTokensResponse.from_parts(registered.user, registered.tokens)


@router.get("/user/search", response_model=UserResponse)
def search_user(request: Request, email: str = "") -> UserResponse:
    return UserResponse.from_view(_users(request).find_by_email(email))


@router.get("/user", response_model=Union[list[UserResponse], UserResponse])
@router.get("/user/", response_model=Union[list[UserResponse], UserResponse], include_in_schema=False)
def list_users(request: Request, email: Optional[str] = None) -> Union[list[UserResponse], UserResponse]:
    """List every account, or look one up when ?email= is present."""
    users = _users(request)
    if email is not None:
        return UserResponse.from_view(users.find_by_email(email))
    return [UserResponse.from_view(v) for v in users.list()]


@router.get("/user/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: str) -> UserResponse:
    return UserResponse.from_view(_users(request).get(user_id))


@router.patch("/user/update/{user_id}", response_model=UserActionResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserPatchRequest,
    identity: Identity = Depends(get_current_identity),
) -> UserActionResponse:
    """Apply a partial update. Only the owner of the record may call this."""
    _users(request).update(user_id, identity.user_id, UserPatch(**body.model_dump()))
    return UserActionResponse(message="User updated successfully", user_id=user_id)


@router.delete("/user/{user_id}", response_model=UserActionResponse)
def delete_user(
    request: Request,
    user_id: str,
    identity: Identity = Depends(get_current_identity),
) -> UserActionResponse:
    """Delete an account and revoke its refresh token."""
    _users(request).delete(user_id, identity.user_id)
    return UserActionResponse(message="User deleted successfully", user_id=user_id)
