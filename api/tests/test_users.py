"""Test watch edges, profile pages and profile edits."""

from __future__ import annotations

import jwt
import pytest

from vidshare import settings
from vidshare.errors import AlreadyWatching, InvalidOperation, NotFound, NotWatching
from vidshare.services import watchers


def test_watch_lifecycle(client, make_user, auth_headers):
    fan = make_user("fan")
    star = make_user("star")
    headers = auth_headers(fan)

    watched = client.post(f"/api/users/{star.id}/watch", headers=headers)
    assert watched.status_code == 200
    assert watched.json() == {"watched_id": star.id, "is_watching": True, "watcher_count": 1}
    assert client.get(f"/api/users/{star.id}/is-watching", headers=headers).json() == {"is_watching": True}

    duplicate = client.post(f"/api/users/{star.id}/watch", headers=headers)
    assert duplicate.status_code == 409

    unwatched = client.delete(f"/api/users/{star.id}/unwatch", headers=headers)
    assert unwatched.json() == {"watched_id": star.id, "is_watching": False, "watcher_count": 0}

    again = client.delete(f"/api/users/{star.id}/unwatch", headers=headers)
    assert again.status_code == 400
    assert client.get(f"/api/users/{star.id}/is-watching", headers=headers).json() == {"is_watching": False}


def test_watch_rejects_self_and_unknown(client, make_user, auth_headers):
    fan = make_user("fan")
    headers = auth_headers(fan)

    assert client.post(f"/api/users/{fan.id}/watch", headers=headers).status_code == 400
    assert client.post("/api/users/999999/watch", headers=headers).status_code == 404
    assert client.post(f"/api/users/{fan.id}/watch").status_code == 401


def test_watch_service_errors(make_user, db):
    fan = make_user("fan")
    star = make_user("star")

    with pytest.raises(InvalidOperation):
        watchers.watch(db, fan.id, fan.id)
    with pytest.raises(NotFound):
        watchers.watch(db, fan.id, 999999)

    watchers.watch(db, fan.id, star.id)
    with pytest.raises(AlreadyWatching):
        watchers.watch(db, fan.id, star.id)

    assert watchers.watcher_ids(db, star.id) == [fan.id]
    watchers.unwatch(db, fan.id, star.id)
    with pytest.raises(NotWatching):
        watchers.unwatch(db, fan.id, star.id)


def test_profile_page_hides_private_videos_from_others(client, make_user, make_video, auth_headers, db):
    owner = make_user("owner")
    fan = make_user("fan")
    make_video(owner, title="Public")
    make_video(owner, title="Private", visibility="Private")
    client.post(f"/api/users/{owner.id}/watch", headers=auth_headers(fan))

    public_view = client.get("/api/users/owner").json()
    own_view = client.get("/api/users/owner", headers=auth_headers(owner)).json()

    assert public_view["watcher_count"] == 1
    assert [v["title"] for v in public_view["videos"]] == ["Public"]
    assert sorted(v["title"] for v in own_view["videos"]) == ["Private", "Public"]
    assert "email" not in public_view
    assert client.get("/api/users/nobody").status_code == 404


def test_profile_edit_reissues_token(client, make_user, auth_headers, media_host):
    user = make_user("alice")

    response = client.put(
        "/api/users/profile",
        headers=auth_headers(user),
        data={
            "username": "alice_b",
            "display_name": "Alice B",
            "links": '["https://alice.example"]',
            "gender": "female",
        },
        files={"avatar": ("me.png", b"\x89PNG fake", "image/png")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["username"] == "alice_b"
    assert body["user"]["display_name"] == "Alice B"
    assert body["user"]["links"] == ["https://alice.example"]
    assert body["user"]["avatar_url"] == media_host.images[0].url

    payload = jwt.decode(body["token"], settings.JWT_SECRET_KEY, algorithms=["HS256"])
    assert payload["username"] == "alice_b"
    assert payload["avatar_url"] == media_host.images[0].url


def test_profile_edit_validation(client, make_user, auth_headers):
    make_user("taken")
    headers = auth_headers(make_user("alice"))

    assert client.put("/api/users/profile", headers=headers, data={"username": "Taken"}).status_code == 409
    assert client.put("/api/users/profile", headers=headers, data={"links": "{}"}).status_code == 400
    assert client.put("/api/users/profile", headers=headers, data={"gender": "robot"}).status_code == 400
    assert client.put(
        "/api/users/profile",
        headers=headers,
        files={"avatar": ("notes.txt", b"hello", "text/plain")},
    ).status_code == 400


def test_activate_channel(client, make_user, auth_headers):
    user = make_user("alice")

    response = client.post("/api/users/activate-channel", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["user"]["is_creator"] is True
    payload = jwt.decode(response.json()["token"], settings.JWT_SECRET_KEY, algorithms=["HS256"])
    assert payload["is_creator"] is True
