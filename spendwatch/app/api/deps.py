# spendwatch/app/api/deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from spendwatch.app.db import get_db
from spendwatch.app.models import Space, SpaceMembership, User

ROLE_ORDER = {
    "viewer": 1,
    "member": 2,
    "admin": 3,
    "owner": 4,
}


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the caller from gateway headers. Read-only: unknown identities
    are rejected, never provisioned.
    """
    email = (request.headers.get("X-User-Email") or "").strip().lower()
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if email:
        user = db.execute(select(User).where(User.email == email)).scalars().first()
    elif user_id:
        user = db.get(User, user_id)
    else:
        raise HTTPException(status_code=401, detail="Missing X-User-Email or X-User-Id header")
    if user is None:
        raise HTTPException(status_code=401, detail="unknown user")
    return user


def require_space(db: Session, space_id: str) -> Space:
    space = db.get(Space, space_id)
    if not space:
        raise HTTPException(status_code=404, detail="space not found")
    return space


def role_at_least(role: str | None, min_role: str) -> bool:
    return ROLE_ORDER.get(role or "", 0) >= ROLE_ORDER.get(min_role, 0)


def require_space_membership(
    db: Session,
    space_id: str,
    user_id: str,
    *,
    min_role: str = "viewer",
) -> SpaceMembership:
    """
    Imperative membership check. Safe to call from inside endpoints/services.
    """
    require_space(db, space_id)
    membership = (
        db.execute(
            select(SpaceMembership).where(
                SpaceMembership.space_id == space_id,
                SpaceMembership.user_id == user_id,
            )
        )
        .scalars()
        .first()
    )
    if not membership:
        raise HTTPException(status_code=403, detail="membership required")
    if not role_at_least(membership.role, min_role):
        raise HTTPException(status_code=403, detail="insufficient role")
    return membership
