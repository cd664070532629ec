"""
api/routes/v1/posts.py -- Post listing, reading, writing and moderation.

Routes:
  GET    /categories/{category_id}/posts   -- paged list, pinned first then newest
  POST   /categories/{category_id}/posts   -- create (write access; anonymous needs a password)
  GET    /posts/{post_id}                  -- read one post; counts a view
  PATCH  /posts/{post_id}                  -- edit (owner, password holder, or Admin)
  DELETE /posts/{post_id}                  -- soft-delete (same rule as edit)
  POST   /posts/{post_id}/vote             -- one vote per user, or per IP when anonymous
  POST   /posts/{post_id}/pin              -- pin / unpin (category manager)
  POST   /posts/{post_id}/attachments      -- upload a file (same rule as edit)

Posts in boards the caller cannot read answer 404.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, Response, UploadFile

from api.limiter import WRITE_LIMIT, limiter
from api.models import (
    AttachmentResponse,
    PasswordBody,
    PinRequest,
    PostCreate,
    PostListResponse,
    PostPatch,
    PostResponse,
    PostSummary,
    VoteResponse,
)
from auth.dependencies import client_ip, get_identity
from auth.models import Identity
from board.content import PostService

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "Post not found."})


def _forbidden() -> HTTPException:
    return HTTPException(
        status_code=403,
        detail={"code": "forbidden", "message": "You are not the author, or the password is wrong."},
    )


def _require_visible(posts: PostService, post_id: int, identity: Identity | None) -> None:
    if posts.get(post_id, identity, count_view=False) is None:
        raise _not_found()


@router.get("/categories/{category_id}/posts", response_model=PostListResponse)
def list_posts(
    request: Request,
    category_id: int,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    search: str | None = Query(default=None, max_length=100),
    identity: Identity | None = Depends(get_identity),
) -> PostListResponse:
    posts: PostService = request.app.state.post_service
    result = posts.list_by_category(category_id, identity, page=page, page_size=page_size, search=search)
    if result is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Category not found."})
    items, total = result
    return PostListResponse(
        items=[PostSummary.from_post(p) for p in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@limiter.limit(WRITE_LIMIT)
@router.post("/categories/{category_id}/posts", response_model=PostResponse, status_code=201)
def create_post(
    request: Request,
    category_id: int,
    body: PostCreate,
    identity: Identity | None = Depends(get_identity),
) -> PostResponse:
    """Create a post. Logged-in callers own it; anonymous callers must set a password."""
    posts: PostService = request.app.state.post_service
    try:
        post = posts.create(
            category_id,
            identity,
            title=body.title,
            content=body.content,
            nickname=body.nickname,
            password=body.password,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_post", "message": str(exc)}) from exc
    if post is None:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You cannot write to this category."},
        )
    return PostResponse.from_post(post)


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(
    request: Request,
    post_id: int,
    identity: Identity | None = Depends(get_identity),
) -> PostResponse:
    posts: PostService = request.app.state.post_service
    post = posts.get(post_id, identity)
    if post is None:
        raise _not_found()
    return PostResponse.from_post(post)


@router.patch("/posts/{post_id}", response_model=PostResponse)
def update_post(
    request: Request,
    post_id: int,
    body: PostPatch,
    identity: Identity | None = Depends(get_identity),
) -> PostResponse:
    posts: PostService = request.app.state.post_service
    _require_visible(posts, post_id, identity)
    try:
        updated = posts.update(post_id, identity, password=body.password, title=body.title, content=body.content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_post", "message": str(exc)}) from exc
    if not updated:
        raise _forbidden()
    return PostResponse.from_post(posts.get(post_id, identity, count_view=False))


@router.delete("/posts/{post_id}", status_code=204)
def delete_post(
    request: Request,
    post_id: int,
    body: PasswordBody | None = None,
    identity: Identity | None = Depends(get_identity),
) -> Response:
    posts: PostService = request.app.state.post_service
    _require_visible(posts, post_id, identity)
    if not posts.delete(post_id, identity, password=body.password if body else None):
        raise _forbidden()
    return Response(status_code=204)


@router.post("/posts/{post_id}/vote", response_model=VoteResponse)
def vote(
    request: Request,
    post_id: int,
    identity: Identity | None = Depends(get_identity),
) -> VoteResponse:
    """Vote once. A repeat vote is answered 200 with accepted=false and a reason."""
    posts: PostService = request.app.state.post_service
    _require_visible(posts, post_id, identity)
    result = posts.vote(post_id, identity, client_ip(request))
    return VoteResponse(accepted=result.accepted, reason=result.reason)


@router.post("/posts/{post_id}/pin", response_model=PostResponse)
def pin_post(
    request: Request,
    post_id: int,
    body: PinRequest,
    identity: Identity | None = Depends(get_identity),
) -> PostResponse:
    posts: PostService = request.app.state.post_service
    _require_visible(posts, post_id, identity)
    if not posts.set_pinned(post_id, identity, body.pinned):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Only category managers can pin posts."},
        )
    return PostResponse.from_post(posts.get(post_id, identity, count_view=False))


@limiter.limit(WRITE_LIMIT)
@router.post("/posts/{post_id}/attachments", response_model=AttachmentResponse, status_code=201)
def upload_attachment(
    request: Request,
    post_id: int,
    file: UploadFile = File(...),
    password: str | None = Form(default=None),
    identity: Identity | None = Depends(get_identity),
) -> AttachmentResponse:
    """Attach an image (10 MB) or video (50 MB) to a post."""
    posts: PostService = request.app.state.post_service
    data = file.file.read()
    _require_visible(posts, post_id, identity)
    try:
        attachment = posts.add_attachment(
            post_id,
            identity,
            password,
            filename=file.filename or "",
            content_type=file.content_type or "",
            data=data,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_upload", "message": str(exc)}) from exc
    if attachment is None:
        raise _forbidden()
    return AttachmentResponse.from_attachment(attachment)
