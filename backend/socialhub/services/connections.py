from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..models import UserConnection
from ..registry import Collection, ModelRegistry

_PAIR = ("owner", "followingTo")


class ConnectionService:
    """
    Follow edges between users.

    The schema allows self-follows and repeated pairs; both are refused here.
    """

    def __init__(self, registry: ModelRegistry):
        self._edges: Collection[UserConnection] = registry.get("UserConnection")

    def follow(self, *, owner: str, following_to: str) -> UserConnection:
        o = str(owner or "").strip()
        f = str(following_to or "").strip()
        if o and o == f:
            raise ValidationError(
                message="followingTo: users cannot follow themselves",
                collection="UserConnection",
                field="followingTo",
            )
        # ConflictError when the pair already exists.
        return self._edges.insert({"owner": o, "followingTo": f}, unique_on=_PAIR)

    def unfollow(self, *, owner: str, following_to: str) -> None:
        edge = self.find_edge(owner=owner, following_to=following_to)
        if edge is None:
            raise NotFoundError(
                message=f"{owner} does not follow {following_to}",
                collection="UserConnection",
            )
        self._edges.remove(edge.id)

    def toggle_follow(self, *, owner: str, following_to: str) -> UserConnection | None:
        """Follow when not following yet, otherwise unfollow. Returns the new edge or None."""
        edge = self.find_edge(owner=owner, following_to=following_to)
        if edge is not None:
            self._edges.remove(edge.id)
            return None
        return self.follow(owner=owner, following_to=following_to)

    def find_edge(self, *, owner: str, following_to: str) -> UserConnection | None:
        o = str(owner or "").strip()
        f = str(following_to or "").strip()
        if not o or not f:
            return None
        # Consistent read of the pair guard written by follow().
        return self._edges.find_unique(owner=o, followingTo=f)

    def followers(self, user_id: str) -> list[UserConnection]:
        return self._edges.find({"followingTo": str(user_id or "").strip()})

    def following(self, user_id: str) -> list[UserConnection]:
        return self._edges.find({"owner": str(user_id or "").strip()})
