"""
Quillpost Backend — Identity
=============================

What:  Resolves the acting user for a request.
How:   The service sits behind a trusted gateway that authenticates the user
       and forwards `X-User-Id` (and optionally `X-User-Name`). No header
       means no user; persistence operations turn that into UnauthorizedError.
Who:   Draft routes via Depends(get_current_user).
"""

from typing import Optional

from fastapi import Header

from quillpost.schemas.draft import CurrentUser


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None, max_length=64),
    x_user_name: Optional[str] = Header(default=None, max_length=200),
) -> Optional[CurrentUser]:
    if not x_user_id or not x_user_id.strip():
        return None
    return CurrentUser(id=x_user_id.strip(), name=x_user_name)
