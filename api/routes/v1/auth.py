"""
api/routes/v1/auth.py -- Authentication and user management REST endpoints.

Routes:
  POST   /api/v1/auth/login                       -- password login; sets session cookie
  POST   /api/v1/auth/logout                      -- clears cookie; always 200
  POST   /api/v1/auth/register                    -- self-registration (User role)
  GET    /api/v1/auth/me                          -- caller identity (requires auth)
  GET    /api/v1/auth/users                       -- list accounts (SubAdmin or Admin)
  PATCH  /api/v1/auth/users/{id}                  -- activate/deactivate, rename (can_manage_user)
  GET    /api/v1/auth/roles                       -- list roles (requires auth)
  POST   /api/v1/auth/users/{id}/roles/{role_id}  -- assign role (Admin only)
  DELETE /api/v1/auth/users/{id}/roles/{role_id}  -- remove role (Admin only)

Security:
  POST /login is throttled per IP by slowapi and per (username, IP) by the
      account lockout in auth/rate_limit.py.
  Login and register responses carry Cache-Control: no-store.
  PATCH /users/{id} blocks self-deactivation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_LIMIT, REGISTER_LIMIT, limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    RoleResponse,
    UserPatch,
    UserResponse,
)
from auth import password_policy
from auth.dependencies import client_ip, require_admin, require_identity
from auth.models import Identity
from auth.roles import RoleService
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import set_session_cookie

# Auth policy:
# - POST   /auth/login, /auth/logout, /auth/register: public
# - GET    /auth/me, /auth/roles:                     requires auth
# - GET    /auth/users:                               SubAdmin or Admin
# - PATCH  /auth/users/{id}:                          can_manage_user()
# - POST/DELETE /auth/users/{id}/roles/{role_id}:     Admin only
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; set the session cookie.

    Failure responses share one shape with a reason code: bad_credentials,
    locked_out, or attempts_exceeded. The message reports remaining
    attempts or minutes.
    """
    auth_service: AuthService = request.app.state.auth_service
    result = auth_service.login(body.username, body.password, client_ip(request))
    if not result.ok:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": result.reason, "message": result.error}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    identity = result.identity
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            username=identity.username,
            display_name=identity.display_name,
            roles=list(identity.roles),
        ).model_dump(),
    )
    set_session_cookie(resp, result.token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the session cookie. Succeeds with or without a session."""
    resp = JSONResponse(content={"message": "Logged out."})
    request.app.state.auth_service.logout(resp)
    return resp


@limiter.limit(REGISTER_LIMIT)
@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account with the User role. Does not log in."""
    if not request.app.state.settings.self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )
    ok, message = password_policy.validate(body.password)
    if not ok:
        raise HTTPException(
            status_code=400,
            detail={"code": "weak_password", "message": message, "detail": password_policy.POLICY_HINT},
        )
    auth_service: AuthService = request.app.state.auth_service
    user = auth_service.register(body.username, body.email, body.password, body.display_name)
    if user is None:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "That username or email is already registered."},
        )
    created = request.app.state.user_store.get_with_roles(user.id)
    resp = JSONResponse(status_code=201, content=UserResponse.from_user(created).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(identity: Identity = Depends(require_identity)) -> MeResponse:
    """Return identity information for the current caller."""
    return MeResponse.from_identity(identity)


@router.get("/auth/roles", response_model=list[RoleResponse])
def list_roles(request: Request, identity: Identity = Depends(require_identity)) -> list[RoleResponse]:
    role_service: RoleService = request.app.state.role_service
    return [RoleResponse(id=r.id, name=r.name, description=r.description) for r in role_service.list_roles()]


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    search: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    identity: Identity = Depends(require_identity),
) -> list[UserResponse]:
    """List accounts with their roles. SubAdmin or Admin."""
    role_service: RoleService = request.app.state.role_service
    if not role_service.is_sub_admin_or_higher(identity):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Administrator access required."},
        )
    user_store: UserStore = request.app.state.user_store
    users = user_store.list_users(search=search, offset=(page - 1) * page_size, limit=page_size)
    return [UserResponse.from_user(u) for u in users]


@router.patch("/auth/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    identity: Identity = Depends(require_identity),
) -> UserResponse:
    """Activate, deactivate or rename an account.

    Admins manage anyone; SubAdmins manage only accounts holding neither
    Admin nor SubAdmin. Nobody may deactivate themselves.
    """
    user_store: UserStore = request.app.state.user_store
    role_service: RoleService = request.app.state.role_service

    target = user_store.get_by_id(user_id)
    if target is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "User not found."})
    if not role_service.can_manage_user(identity, user_id):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You cannot manage this account."},
        )

    updates: dict = {}
    if body.is_active is not None:
        if not body.is_active and user_id == identity.user_id:
            raise HTTPException(
                status_code=400,
                detail={"code": "self_deactivation", "message": "You cannot deactivate your own account."},
            )
        updates["is_active"] = body.is_active
    if body.display_name is not None:
        updates["display_name"] = body.display_name
    if not updates:
        raise HTTPException(status_code=400, detail={"code": "no_changes", "message": "No fields to update."})

    user_store.update_user(user_id, **updates)
    return UserResponse.from_user(user_store.get_with_roles(user_id))


@router.post("/auth/users/{user_id}/roles/{role_id}", response_model=UserResponse)
def assign_role(
    request: Request,
    user_id: int,
    role_id: int,
    identity: Identity = Depends(require_admin),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    role_service: RoleService = request.app.state.role_service
    if user_store.get_by_id(user_id) is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "User not found."})
    if not role_service.assign_role(user_id, role_id):
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "Role is unknown or already assigned."},
        )
    return UserResponse.from_user(user_store.get_with_roles(user_id))


@router.delete("/auth/users/{user_id}/roles/{role_id}", response_model=UserResponse)
def remove_role(
    request: Request,
    user_id: int,
    role_id: int,
    identity: Identity = Depends(require_admin),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    role_service: RoleService = request.app.state.role_service
    if not role_service.remove_role(user_id, role_id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "The user does not hold that role."},
        )
    return UserResponse.from_user(user_store.get_with_roles(user_id))
