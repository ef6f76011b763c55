from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..deps import get_notification_service
from ..errors import NotFoundError
from ..models import NotificationType
from ..services.notifications import NotificationService

router = APIRouter(tags=["notifications"])


class CreateNotificationRequest(BaseModel):
    title: str | None = None
    body: str | None = None
    sentTo: list[str] = Field(default_factory=list)
    type: NotificationType | None = None
    notificationFromUser: str | None = None


@router.post("/notifications", status_code=201)
def create_notification(
    body: CreateNotificationRequest,
    svc: NotificationService = Depends(get_notification_service),
):
    n = svc.create(
        title=body.title,
        body=body.body,
        sent_to=body.sentTo,
        type=body.type,
        notification_from_user=body.notificationFromUser,
    )
    return {"data": n.to_document()}


@router.get("/notifications")
def list_notifications(
    sentTo: str = Query(..., min_length=1),
    svc: NotificationService = Depends(get_notification_service),
):
    return {"data": [n.to_document() for n in svc.for_recipient(sentTo)]}


@router.get("/notifications/{notificationId}")
def get_notification(
    notificationId: str,
    resolve: bool = False,
    svc: NotificationService = Depends(get_notification_service),
):
    n = svc.get(notificationId)
    if n is None:
        raise NotFoundError(
            message="Notification not found.", collection="Notification", record_id=notificationId
        )
    out = n.to_document()
    if resolve:
        out["sentToUsers"] = [u.to_document() if u else None for u in svc.recipients(n)]
    return {"data": out}


@router.delete("/notifications/{notificationId}")
def delete_notification(
    notificationId: str,
    svc: NotificationService = Depends(get_notification_service),
):
    svc.delete(notificationId)
    return {"message": "Notification deleted successfully."}
