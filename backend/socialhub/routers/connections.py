from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_connection_service
from ..services.connections import ConnectionService

router = APIRouter(tags=["connections"])


class FollowRequest(BaseModel):
    # No auth layer here: the caller names the follower explicitly.
    owner: str
    followingTo: str


@router.post("/connections/follow")
def toggle_follow(body: FollowRequest, svc: ConnectionService = Depends(get_connection_service)):
    edge = svc.toggle_follow(owner=body.owner, following_to=body.followingTo)
    if edge is None:
        return {"following": False, "message": "Account Unfollowed"}
    return {
        "following": True,
        "data": edge.to_document(),
        "message": "You are now following this account",
    }


@router.get("/users/{userId}/followers")
def list_followers(userId: str, svc: ConnectionService = Depends(get_connection_service)):
    return {"data": [c.to_document() for c in svc.followers(userId)]}


@router.get("/users/{userId}/following")
def list_following(userId: str, svc: ConnectionService = Depends(get_connection_service)):
    return {"data": [c.to_document() for c in svc.following(userId)]}
