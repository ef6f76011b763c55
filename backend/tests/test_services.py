from __future__ import annotations

from datetime import datetime, timezone

import pytest

from socialhub.errors import ConflictError, NotFoundError, ReferenceDanglingWarning, ValidationError
from socialhub.references import resolve, resolve_all
from socialhub.services.connections import ConnectionService
from socialhub.services.modules import ModuleService
from socialhub.services.notifications import NotificationService


# --- modules ---


def test_module_titles_are_unique(registry):
    svc = ModuleService(registry)
    svc.create(title="Intro")
    with pytest.raises(ConflictError):
        svc.create(title=" Intro ")
    assert len(svc.search()) == 1


def test_module_title_guard_holds_while_the_index_lags(registry, table, monkeypatch):
    svc = ModuleService(registry)
    svc.create(title="Intro")
    # The collection index has not caught up with the first write yet.
    monkeypatch.setattr(table, "query_all", lambda **_kw: [])

    with pytest.raises(ConflictError) as ei:
        svc.create(title="Intro")
    assert ei.value.fields == ("title",)
    assert len(table.records("Module")) == 1


def test_module_rename_to_a_taken_title_is_a_conflict(registry):
    svc = ModuleService(registry)
    svc.create(title="Intro")
    outro = svc.create(title="Outro")

    with pytest.raises(ConflictError):
        svc.rename(outro.id, title="Intro")

    basics = svc.rename(outro.id, title="Basics")
    # The old title is free again.
    assert svc.create(title="Outro").id != basics.id


def test_module_search_is_case_insensitive_and_newest_first(registry):
    svc = ModuleService(registry)
    a = svc.create(title="Intro to Python")
    svc.create(title="Advanced Go")
    c = svc.create(title="python tooling")

    assert [m.id for m in svc.search(title="PYTHON")] == [c.id, a.id]
    assert len(svc.search()) == 3
    assert svc.search(title="rust") == []


def test_module_rename_and_delete(registry):
    svc = ModuleService(registry)
    m = svc.create(title="Intro")

    assert svc.rename(m.id, title="Basics").title == "Basics"
    assert svc.get(m.id).title == "Basics"

    svc.delete(m.id)
    assert svc.get(m.id) is None
    with pytest.raises(NotFoundError):
        svc.delete(m.id)


# --- connections ---


def test_follow_persists_edge_with_timestamps(registry):
    svc = ConnectionService(registry)
    before = datetime.now(timezone.utc)
    edge = svc.follow(owner="u1", following_to="u2")

    assert (edge.owner, edge.followingTo) == ("u1", "u2")
    assert before <= edge.createdAt <= datetime.now(timezone.utc)
    assert edge.updatedAt == edge.createdAt
    assert svc.find_edge(owner="u1", following_to="u2") == edge


def test_following_the_same_user_twice_is_rejected(registry, table):
    svc = ConnectionService(registry)
    svc.follow(owner="u1", following_to="u2")
    with pytest.raises(ConflictError):
        svc.follow(owner="u1", following_to="u2")
    assert len(table.records("UserConnection")) == 1


def test_self_follow_is_rejected(registry, table):
    with pytest.raises(ValidationError) as ei:
        ConnectionService(registry).follow(owner="u1", following_to=" u1 ")
    assert ei.value.field == "followingTo"
    assert table.records("UserConnection") == []


def test_follow_requires_both_ids(registry):
    with pytest.raises(ValidationError) as ei:
        ConnectionService(registry).follow(owner="u1", following_to="")
    assert ei.value.field == "followingTo"


def test_toggle_follow_alternates(registry):
    svc = ConnectionService(registry)

    edge = svc.toggle_follow(owner="u1", following_to="u2")
    assert edge is not None
    assert svc.toggle_follow(owner="u1", following_to="u2") is None
    assert svc.find_edge(owner="u1", following_to="u2") is None
    assert svc.toggle_follow(owner="u1", following_to="u2") is not None


def test_toggle_sees_a_fresh_follow_before_the_index_does(registry, table, monkeypatch):
    svc = ConnectionService(registry)
    svc.toggle_follow(owner="u1", following_to="u2")
    monkeypatch.setattr(table, "query_all", lambda **_kw: [])

    assert svc.toggle_follow(owner="u1", following_to="u2") is None
    assert table.records("UserConnection") == []


def test_unfollow_missing_edge_is_not_found(registry):
    with pytest.raises(NotFoundError):
        ConnectionService(registry).unfollow(owner="u1", following_to="u2")


def test_followers_and_following(registry):
    svc = ConnectionService(registry)
    svc.follow(owner="u1", following_to="u3")
    svc.follow(owner="u2", following_to="u3")
    svc.follow(owner="u3", following_to="u1")

    assert [c.owner for c in svc.followers("u3")] == ["u1", "u2"]
    assert [c.followingTo for c in svc.following("u3")] == ["u1"]
    svc.unfollow(owner="u1", following_to="u3")
    assert [c.owner for c in svc.followers("u3")] == ["u2"]


# --- notifications ---


def test_notification_keeps_recipient_order_and_creation_time(registry):
    n = NotificationService(registry).create(title="Hi", body="Hello", sent_to=["u1", "u2"])

    assert n.sentTo == ["u1", "u2"]
    assert n.createdAt <= datetime.now(timezone.utc)
    assert registry.get("Notification").find_by_id(n.id).sentTo == ["u1", "u2"]


@pytest.mark.parametrize("sent_to", [[], (), None])
def test_notification_without_recipients_is_rejected(registry, table, sent_to):
    # The schema alone would store it.
    assert registry.get("Notification").schema(title="t", body="b").sentTo == []

    with pytest.raises(ValidationError) as ei:
        NotificationService(registry).create(title="Hi", body="Hello", sent_to=sent_to)
    assert ei.value.field == "sentTo"
    assert table.records("Notification") == []


def test_notification_recipient_ids_must_be_non_empty(registry):
    with pytest.raises(ValidationError) as ei:
        NotificationService(registry).create(title="Hi", body="Hello", sent_to=["u1", ""])
    assert ei.value.field == "sentTo.1"


@pytest.mark.parametrize("missing", ["title", "body"])
def test_notification_title_and_body_are_required(registry, missing):
    kwargs = {"title": "Hi", "body": "Hello", "sent_to": ["u1"], missing: ""}
    with pytest.raises(ValidationError) as ei:
        NotificationService(registry).create(**kwargs)
    assert ei.value.field == missing


def test_notifications_for_recipient_newest_first(registry):
    svc = NotificationService(registry)
    first = svc.create(title="1", body="b", sent_to=["u1", "u2"])
    svc.create(title="2", body="b", sent_to=["u2"])
    third = svc.create(title="3", body="b", sent_to=["u1"], type="follow", notification_from_user="u9")

    assert [n.id for n in svc.for_recipient("u1")] == [third.id, first.id]
    assert third.type.value == "follow"


def test_recipients_resolve_with_none_for_dangling_ids(registry):
    users = registry.get("User")
    alice = users.insert({"userName": "alice"})
    svc = NotificationService(registry)
    n = svc.create(title="Hi", body="Hello", sent_to=[alice.id, "ghost"])

    with pytest.warns(ReferenceDanglingWarning):
        resolved = svc.recipients(n)

    assert resolved[0].userName == "alice"
    assert resolved[1] is None


def test_resolve_single_and_all_references(registry):
    bob = registry.get("User").insert({"userName": "bob"})
    edge = ConnectionService(registry).follow(owner=bob.id, following_to="gone")

    with pytest.warns(ReferenceDanglingWarning):
        refs = resolve_all(registry, edge)
    assert refs["owner"].id == bob.id
    assert refs["followingTo"] is None

    with pytest.raises(KeyError):
        resolve(registry, edge, "createdAt")
