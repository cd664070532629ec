"""
api/routes/v1/categories.py -- Boards and per-board access grants.

Routes:
  GET    /categories                          -- boards the caller may read
  GET    /categories/{url_slug}               -- one board (404 if not readable)
  POST   /categories                          -- create board (Admin)
  PATCH  /categories/{category_id}            -- edit board (manager)
  DELETE /categories/{category_id}            -- delete empty board (Admin)
  GET    /categories/{category_id}/grants     -- list grants (manager)
  PUT    /categories/{category_id}/grants     -- upsert one grant (manager)
  DELETE /categories/{category_id}/grants     -- revoke one grant (manager)

A "manager" is an Admin or a holder of a Manage grant on that board.
Private boards the caller cannot read answer 404, not 403, so their
existence does not leak.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from api.models import CategoryCreate, CategoryPatch, CategoryResponse, GrantRequest, GrantResponse
from auth.dependencies import get_identity, require_admin, require_identity
from auth.models import Identity
from board.access import CategoryAccessService
from board.categories import CategoryService
from board.models import AccessTier

router = APIRouter()

_TIERS = {"read": AccessTier.READ, "write": AccessTier.WRITE, "manage": AccessTier.MANAGE}


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "Category not found."})


def _require_manager(request: Request, category_id: int, identity: Identity) -> None:
    categories: CategoryService = request.app.state.category_service
    access: CategoryAccessService = request.app.state.access_service
    if categories.get(category_id) is None:
        raise _not_found()
    if not access.can_manage(category_id, identity):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You cannot manage this category."},
        )


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(
    request: Request,
    identity: Identity | None = Depends(get_identity),
) -> list[CategoryResponse]:
    access: CategoryAccessService = request.app.state.access_service
    return [CategoryResponse.from_category(c) for c in access.accessible_categories(identity)]


@router.get("/categories/{url_slug}", response_model=CategoryResponse)
def get_category(
    request: Request,
    url_slug: str,
    identity: Identity | None = Depends(get_identity),
) -> CategoryResponse:
    categories: CategoryService = request.app.state.category_service
    access: CategoryAccessService = request.app.state.access_service
    category = categories.get_by_slug(url_slug)
    if category is None or not access.can_access(category.id, identity):
        raise _not_found()
    return CategoryResponse.from_category(category)


@router.post("/categories", response_model=CategoryResponse, status_code=201)
def create_category(
    request: Request,
    body: CategoryCreate,
    identity: Identity = Depends(require_admin),
) -> CategoryResponse:
    categories: CategoryService = request.app.state.category_service
    category = categories.create(
        name=body.name,
        url_slug=body.url_slug,
        description=body.description,
        display_order=body.display_order,
        is_public=body.is_public,
        require_auth=body.require_auth,
    )
    if category is None:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": f"A category with slug {body.url_slug!r} already exists."},
        )
    return CategoryResponse.from_category(category)


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
def update_category(
    request: Request,
    category_id: int,
    body: CategoryPatch,
    identity: Identity = Depends(require_identity),
) -> CategoryResponse:
    _require_manager(request, category_id, identity)
    fields = body.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail={"code": "no_changes", "message": "No fields to update."})
    categories: CategoryService = request.app.state.category_service
    if not categories.update(category_id, **fields):
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "That url slug is already in use."},
        )
    return CategoryResponse.from_category(categories.get(category_id))


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(
    request: Request,
    category_id: int,
    identity: Identity = Depends(require_admin),
) -> Response:
    categories: CategoryService = request.app.state.category_service
    if categories.get(category_id) is None:
        raise _not_found()
    if not categories.delete(category_id):
        raise HTTPException(
            status_code=409,
            detail={"code": "category_not_empty", "message": "Cannot delete a category that still has posts."},
        )
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Grants
# ---------------------------------------------------------------------------


@router.get("/categories/{category_id}/grants", response_model=list[GrantResponse])
def list_grants(
    request: Request,
    category_id: int,
    identity: Identity = Depends(require_identity),
) -> list[GrantResponse]:
    _require_manager(request, category_id, identity)
    access: CategoryAccessService = request.app.state.access_service
    return [GrantResponse.from_grant(g) for g in access.list_grants(category_id)]


@router.put("/categories/{category_id}/grants", response_model=list[GrantResponse])
def put_grant(
    request: Request,
    category_id: int,
    body: GrantRequest,
    identity: Identity = Depends(require_identity),
) -> list[GrantResponse]:
    """Grant a tier to one user or one role. Re-granting replaces the tier."""
    _require_manager(request, category_id, identity)
    access: CategoryAccessService = request.app.state.access_service
    try:
        granted = access.grant_access(category_id, _TIERS[body.tier.value], user_id=body.user_id, role_id=body.role_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_grant", "message": str(exc)}) from exc
    if not granted:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "User or role not found."})
    return [GrantResponse.from_grant(g) for g in access.list_grants(category_id)]


@router.delete("/categories/{category_id}/grants", status_code=204)
def delete_grant(
    request: Request,
    category_id: int,
    user_id: int | None = Query(default=None),
    role_id: int | None = Query(default=None),
    identity: Identity = Depends(require_identity),
) -> Response:
    _require_manager(request, category_id, identity)
    access: CategoryAccessService = request.app.state.access_service
    try:
        revoked = access.revoke_access(category_id, user_id=user_id, role_id=role_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_grant", "message": str(exc)}) from exc
    if not revoked:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Grant not found."})
    return Response(status_code=204)
