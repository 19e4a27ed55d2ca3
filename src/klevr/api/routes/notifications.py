from __future__ import annotations

import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from klevr.api.deps import get_db, require_user
from klevr.api.schemas import NotificationListResponse, NotificationResponse, Pagination
from klevr.db.models import User
from klevr.db.repositories import Repository

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

MAX_PAGE_SIZE = 100


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    unread_only: bool = False,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> NotificationListResponse:
    limit = min(limit, MAX_PAGE_SIZE)
    repo = Repository(db)
    rows, total = repo.list_notifications(user.id, page=page, limit=limit, unread_only=unread_only)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(row) for row in rows],
        pagination=Pagination(page=page, limit=limit, total=total, totalPages=math.ceil(total / limit)),
        unreadCount=repo.count_unread_notifications(user.id),
    )


@router.get("/unread-count")
def unread_count(user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    return {"unreadCount": Repository(db).count_unread_notifications(user.id)}


@router.post("/mark-all-read")
def mark_all_read(user: User = Depends(require_user), db: Session = Depends(get_db)) -> dict:
    marked = Repository(db).mark_all_notifications_read(user.id)
    return {"success": True, "markedCount": marked}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: str,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> NotificationResponse:
    repo = Repository(db)
    notification = repo.get_owned_notification(notification_id, user.id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationResponse.model_validate(repo.mark_notification_read(notification))
