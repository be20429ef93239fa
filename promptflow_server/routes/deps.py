"""Shared route dependencies."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Owner of the request. Authentication itself happens upstream."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id
