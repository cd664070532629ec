"""
api/routes/v1/comments.py -- Comments and replies on posts.

Routes:
  GET    /posts/{post_id}/comments   -- flat list, oldest first; clients nest by parent_comment_id
  POST   /posts/{post_id}/comments   -- comment or reply (write access on the post's board)
  PATCH  /comments/{comment_id}      -- edit (owner, password holder, or Admin)
  DELETE /comments/{comment_id}      -- soft-delete (same rule as edit)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.limiter import WRITE_LIMIT, limiter
from api.models import CommentCreate, CommentPatch, CommentResponse, PasswordBody
from auth.dependencies import get_identity
from auth.models import Identity
from board.content import CommentService

router = APIRouter()


def _not_found(what: str = "Comment") -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": f"{what} not found."})


@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
def list_comments(
    request: Request,
    post_id: int,
    identity: Identity | None = Depends(get_identity),
) -> list[CommentResponse]:
    comments: CommentService = request.app.state.comment_service
    result = comments.list_for_post(post_id, identity)
    if result is None:
        raise _not_found("Post")
    return [CommentResponse.from_comment(c) for c in result]


@limiter.limit(WRITE_LIMIT)
@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=201)
def create_comment(
    request: Request,
    post_id: int,
    body: CommentCreate,
    identity: Identity | None = Depends(get_identity),
) -> CommentResponse:
    comments: CommentService = request.app.state.comment_service
    if comments.visible_post(post_id, identity) is None:
        raise _not_found("Post")
    try:
        comment = comments.create(
            post_id,
            identity,
            content=body.content,
            nickname=body.nickname,
            password=body.password,
            parent_comment_id=body.parent_comment_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_comment", "message": str(exc)}) from exc
    if comment is None:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You cannot comment in this category."},
        )
    return CommentResponse.from_comment(comment)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
def update_comment(
    request: Request,
    comment_id: int,
    body: CommentPatch,
    identity: Identity | None = Depends(get_identity),
) -> CommentResponse:
    comments: CommentService = request.app.state.comment_service
    if comments.get(comment_id, identity) is None:
        raise _not_found()
    try:
        updated = comments.update(comment_id, identity, content=body.content, password=body.password)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "invalid_comment", "message": str(exc)}) from exc
    if not updated:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You are not the author, or the password is wrong."},
        )
    return CommentResponse.from_comment(comments.get(comment_id, identity))


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    request: Request,
    comment_id: int,
    body: PasswordBody | None = None,
    identity: Identity | None = Depends(get_identity),
) -> Response:
    comments: CommentService = request.app.state.comment_service
    if comments.get(comment_id, identity) is None:
        raise _not_found()
    if not comments.delete(comment_id, identity, password=body.password if body else None):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You are not the author, or the password is wrong."},
        )
    return Response(status_code=204)
