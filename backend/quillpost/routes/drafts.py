"""
Quillpost Backend — Draft Route Handlers
=========================================

What:  POST/GET /api/drafts and GET/DELETE /api/drafts/{id}.
How:   Resolves the acting user from gateway headers, takes a session from
       the DatabaseContext on app.state, delegates to DraftService.
Who:   The editor's DraftApiClient.

Caching:
    Snapshots are immutable, so GET /api/drafts/{id} is privately cacheable.
    Listings change on every save and are never cached.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from quillpost.config import settings
from quillpost.database import get_db_session
from quillpost.identity import get_current_user
from quillpost.schemas.draft import (
    CurrentUser,
    DeleteResponse,
    DraftCreate,
    DraftListResponse,
    DraftSnapshot,
    ErrorResponse,
)
from quillpost.services.draft_service import draft_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Drafts"])

_ERRORS = {
    401: {"description": "No user, or not the owner", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


@router.post(
    "/drafts",
    status_code=201,
    response_model=DraftSnapshot,
    responses=_ERRORS,
    summary="Save a new draft snapshot",
)
async def save_draft(
    body: DraftCreate,
    db: AsyncSession = Depends(get_db_session),
    user: Optional[CurrentUser] = Depends(get_current_user),
) -> DraftSnapshot:
    """Always creates a new snapshot; earlier snapshots are never overwritten."""
    return await draft_service.save(db, user, body)


@router.get(
    "/drafts",
    response_model=DraftListResponse,
    responses=_ERRORS,
    summary="List draft snapshots, newest first",
    description=(
        "With post_id: the caller's snapshots of that post. Without: the caller's "
        "snapshots not yet attached to any post."
    ),
)
async def list_drafts(
    response: Response,
    post_id: Optional[str] = Query(default=None, max_length=64),
    limit: int = Query(default=settings.draft_list_limit, ge=1, le=50),
    db: AsyncSession = Depends(get_db_session),
    user: Optional[CurrentUser] = Depends(get_current_user),
) -> DraftListResponse:
    drafts = await draft_service.list(db, user, post_id=post_id, limit=limit)
    response.headers["Cache-Control"] = "no-store"
    return DraftListResponse(drafts=drafts, count=len(drafts))


@router.get(
    "/drafts/{draft_id}",
    response_model=DraftSnapshot,
    responses={404: {"description": "Draft not found", "model": ErrorResponse}, **_ERRORS},
    summary="Get one draft snapshot",
)
async def get_draft(
    draft_id: str,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    user: Optional[CurrentUser] = Depends(get_current_user),
) -> DraftSnapshot:
    snapshot = await draft_service.get(db, user, draft_id)
    response.headers["Cache-Control"] = "private, max-age=3600"
    return snapshot


@router.delete(
    "/drafts/{draft_id}",
    response_model=DeleteResponse,
    responses={404: {"description": "Draft not found", "model": ErrorResponse}, **_ERRORS},
    summary="Delete one draft snapshot",
)
async def delete_draft(
    draft_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: Optional[CurrentUser] = Depends(get_current_user),
) -> DeleteResponse:
    """A second delete of the same id returns 404."""
    deleted = await draft_service.delete(db, user, draft_id)
    return DeleteResponse(deleted=deleted)
