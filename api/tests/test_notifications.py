"""Test the notification inbox and referent resolution."""

from __future__ import annotations

from vidshare.models import Comment
from vidshare.schemas import NotificationType, RelatedEntityType
from vidshare.services.notifications import RELATED_LOADERS, NotificationService


def _notify(db, recipient, message="hello", related_type=None, related_id=None, sender=None):
    notification = NotificationService.build(
        recipient_id=recipient.id,
        notification_type=NotificationType.MENTION,
        message=message,
        sender_id=sender.id if sender else None,
        related_type=related_type,
        related_id=related_id,
    )
    NotificationService.add_many(db, [notification])
    db.commit()
    return notification


def test_every_referent_kind_has_a_loader():
    assert set(RELATED_LOADERS) == set(RelatedEntityType)


def test_list_is_scoped_and_newest_first(client, make_user, auth_headers, db):
    alice = make_user("alice")
    bob = make_user("bob")
    first = _notify(db, alice, "first")
    second = _notify(db, alice, "second")
    _notify(db, bob, "for bob")

    inbox = client.get("/api/notifications", headers=auth_headers(alice)).json()

    assert [n["id"] for n in inbox] == [second.id, first.id]
    assert all(n["user_id"] == alice.id for n in inbox)


def test_mark_read_is_scoped_to_the_caller(client, make_user, auth_headers, db):
    alice = make_user("alice")
    bob = make_user("bob")
    note = _notify(db, alice)

    assert client.put(f"/api/notifications/{note.id}/read", headers=auth_headers(bob)).status_code == 404
    assert client.get("/api/notifications/unread-count", headers=auth_headers(alice)).json() == {"unread_count": 1}

    response = client.put(f"/api/notifications/{note.id}/read", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert client.get("/api/notifications/unread-count", headers=auth_headers(alice)).json() == {"unread_count": 0}


def test_mark_all_read_and_unread_filter(client, make_user, auth_headers, db):
    alice = make_user("alice")
    bob = make_user("bob")
    for i in range(3):
        _notify(db, alice, f"n{i}")
    _notify(db, bob)

    assert len(client.get("/api/notifications", params={"unread_only": True}, headers=auth_headers(alice)).json()) == 3

    marked = client.put("/api/notifications/read-all", headers=auth_headers(alice))
    assert marked.json() == {"updated": 3}
    assert client.get("/api/notifications", params={"unread_only": True}, headers=auth_headers(alice)).json() == []
    assert client.get("/api/notifications/unread-count", headers=auth_headers(bob)).json() == {"unread_count": 1}


def test_related_referents_are_resolved_per_kind(client, make_user, make_video, auth_headers, db):
    alice = make_user("alice")
    bob = make_user("bob")
    video = make_video(bob, title="Sunset")
    comment = Comment(user_id=bob.id, video_id=video.id, text="hi @alice")
    db.add(comment)
    db.commit()

    _notify(db, alice, "video", RelatedEntityType.VIDEO, video.id, sender=bob)
    _notify(db, alice, "comment", RelatedEntityType.COMMENT, comment.id, sender=bob)
    _notify(db, alice, "user", RelatedEntityType.USER, bob.id, sender=bob)
    _notify(db, alice, "gone", RelatedEntityType.VIDEO, 999999)
    _notify(db, alice, "none")

    inbox = {n["message"]: n for n in client.get("/api/notifications", headers=auth_headers(alice)).json()}

    assert inbox["video"]["related"] == {"kind": "video", "id": video.id, "title": "Sunset", "thumbnail_url": None}
    assert inbox["comment"]["related"] == {
        "kind": "comment",
        "id": comment.id,
        "video_id": video.id,
        "text": "hi @alice",
    }
    assert inbox["user"]["related"] == {"kind": "user", "id": bob.id, "username": "bob", "avatar_url": None}
    assert inbox["gone"]["related"] is None
    assert inbox["gone"]["related_entity_type"] == "video"
    assert inbox["none"]["related"] is None
    assert inbox["none"]["related_entity_type"] is None


def test_notifications_require_authentication(client):
    response = client.get("/api/notifications")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
