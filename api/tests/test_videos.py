"""Test the video catalog: upload, listing, visibility, views and ownership."""

from __future__ import annotations

from sqlalchemy import func, select

from vidshare.models import Notification, Video, Watcher
from vidshare.routers import videos as videos_router
from vidshare.services import videos as video_service
from vidshare.services.notifications import NotificationService


def _upload(client, headers, title="First light", filename="clip.mp4", content=b"\x00" * 2048, **form):
    return client.post(
        "/api/videos/upload",
        headers=headers,
        files={"video": (filename, content, "video/mp4")},
        data={"title": title, **form},
    )


def test_upload_requires_creator(client, make_user, auth_headers):
    viewer = make_user("viewer")
    response = _upload(client, auth_headers(viewer))
    assert response.status_code == 403
    assert "Activate your channel" in response.json()["detail"]


def test_upload_notifies_every_watcher(client, make_user, auth_headers, db, media_host):
    maker = make_user("maker", is_creator=True)
    fans = [make_user("fan1"), make_user("fan2")]
    db.add_all([Watcher(watcher_id=fan.id, watched_id=maker.id) for fan in fans])
    db.commit()

    response = _upload(client, auth_headers(maker), description="Dawn timelapse", category="Travel")

    assert response.status_code == 201
    body = response.json()
    assert body["title"] == "First light"
    assert body["username"] == "maker"
    assert body["category"] == "Travel"
    assert body["video_url"] == media_host.videos[0].url
    assert body["duration"] == 12
    assert body["likes"] == 0 and body["dislikes"] == 0

    for fan in fans:
        inbox = client.get("/api/notifications", headers=auth_headers(fan)).json()
        assert len(inbox) == 1
        assert inbox[0]["type"] == "NEW_VIDEO"
        assert inbox[0]["message"] == "New video from maker: First light"
        assert inbox[0]["sender_id"] == maker.id
        assert inbox[0]["related"] == {
            "kind": "video",
            "id": body["id"],
            "title": "First light",
            "thumbnail_url": media_host.videos[0].thumbnail_url,
        }

    assert client.get("/api/notifications", headers=auth_headers(maker)).json() == []


def test_upload_failure_rolls_back_and_schedules_cleanup(client, make_user, auth_headers, db, monkeypatch):
    maker = make_user("maker", is_creator=True)
    fan = make_user("fan")
    db.add(Watcher(watcher_id=fan.id, watched_id=maker.id))
    db.commit()

    def broken_add_many(session, notifications):
        raise RuntimeError("notification insert failed")

    cleanups = []
    monkeypatch.setattr(NotificationService, "add_many", staticmethod(broken_add_many))
    monkeypatch.setattr(videos_router, "enqueue_asset_cleanup", cleanups.append)

    response = _upload(client, auth_headers(maker))

    assert response.status_code == 500
    assert response.json()["detail"] == "The upload could not be saved"
    assert cleanups == ["videos/clip1"]
    assert db.scalar(select(func.count()).select_from(Video)) == 0
    assert db.scalar(select(func.count()).select_from(Notification)) == 0


def test_upload_validates_file(client, make_user, auth_headers):
    headers = auth_headers(make_user("maker", is_creator=True))

    empty = _upload(client, headers, content=b"")
    wrong_type = client.post(
        "/api/videos/upload",
        headers=headers,
        files={"video": ("notes.txt", b"hello", "text/plain")},
        data={"title": "Notes"},
    )
    bad_visibility = _upload(client, headers, visibility="Secret")

    assert empty.status_code == 400
    assert wrong_type.status_code == 400
    assert bad_visibility.status_code == 400


def test_catalog_is_public_and_newest_first(client, make_user, make_video):
    owner = make_user("owner")
    older = make_video(owner, title="Older")
    newer = make_video(owner, title="Newer", category="Music")
    make_video(owner, title="Hidden", visibility="Private")
    make_video(owner, title="Link only", visibility="Unlisted")

    listing = client.get("/api/videos").json()
    assert [v["id"] for v in listing] == [newer.id, older.id]
    assert listing[0]["username"] == "owner"

    music = client.get("/api/videos", params={"category": "Music"}).json()
    assert [v["id"] for v in music] == [newer.id]


def test_search_and_suggestions(client, make_user, make_video):
    owner = make_user("owner")
    cats = make_video(owner, title="Cats at play", description="Kittens")
    make_video(owner, title="Dog park")
    make_video(owner, title="Secret cats", visibility="Private")

    assert [v["id"] for v in client.get("/api/videos/search", params={"q": "CAT"}).json()] == [cats.id]
    assert [v["id"] for v in client.get("/api/videos/search", params={"q": "kitten"}).json()] == [cats.id]
    assert client.get("/api/videos/search", params={"q": "   "}).status_code == 400
    assert client.get("/api/videos/search").status_code == 400

    suggestions = client.get("/api/videos/suggestions", params={"q": "cat"}).json()
    assert suggestions == [{"id": cats.id, "title": "Cats at play"}]
    assert client.get("/api/videos/suggestions").json() == []


def test_private_video_is_only_visible_to_owner(client, make_user, make_video, auth_headers):
    owner = make_user("owner")
    other = make_user("other")
    video = make_video(owner, visibility="Private")

    assert client.get(f"/api/videos/{video.id}").status_code == 404
    assert client.get(f"/api/videos/{video.id}", headers=auth_headers(other)).status_code == 404
    assert client.get(f"/api/videos/{video.id}", headers=auth_headers(owner)).status_code == 200
    assert client.post(f"/api/videos/{video.id}/view").status_code == 404


def test_view_increment_is_unconditional(client, make_user, make_video):
    video = make_video(make_user("owner"))

    counts = [client.post(f"/api/videos/{video.id}/view").json()["views"] for _ in range(3)]

    assert counts == [1, 2, 3]
    assert client.get(f"/api/videos/{video.id}").json()["views"] == 3
    assert client.post("/api/videos/999999/view").status_code == 404


def test_signed_url_counts_a_view(client, make_user, make_video, auth_headers):
    owner = make_user("owner")
    video = make_video(owner)

    assert client.get(f"/api/videos/{video.id}/signed-url").status_code == 401
    response = client.get(f"/api/videos/{video.id}/signed-url", headers=auth_headers(owner))
    assert response.status_code == 200
    assert response.json() == {"video_id": video.id, "url": video.video_url, "views": 1}


def test_edit_and_delete_check_existence_before_ownership(client, make_user, make_video, auth_headers):
    owner = make_user("owner")
    intruder = make_user("intruder")
    video = make_video(owner)

    assert client.put("/api/videos/999999", json={"title": "x"}, headers=auth_headers(intruder)).status_code == 404
    assert client.delete("/api/videos/999999", headers=auth_headers(intruder)).status_code == 404
    assert client.put(f"/api/videos/{video.id}", json={"title": "x"}, headers=auth_headers(intruder)).status_code == 403
    assert client.delete(f"/api/videos/{video.id}", headers=auth_headers(intruder)).status_code == 403

    updated = client.put(
        f"/api/videos/{video.id}",
        json={"title": "Renamed", "visibility": "Unlisted"},
        headers=auth_headers(owner),
    )
    assert updated.status_code == 200
    assert updated.json()["title"] == "Renamed"
    assert updated.json()["visibility"] == "Unlisted"

    assert client.delete(f"/api/videos/{video.id}", headers=auth_headers(owner)).status_code == 204
    assert client.get(f"/api/videos/{video.id}").status_code == 404


def test_studio_lists_all_own_videos_with_totals(client, make_user, make_video, auth_headers):
    maker = make_user("maker", is_creator=True)
    fan = make_user("fan")
    public = make_video(maker, title="Public one")
    make_video(maker, title="Private one", visibility="Private")

    client.post(f"/api/videos/{public.id}/like", headers=auth_headers(fan))
    client.post(f"/api/videos/{public.id}/comments", json={"text": "nice"}, headers=auth_headers(fan))

    studio = client.get("/api/studio/my-videos", headers=auth_headers(maker)).json()
    assert len(studio) == 2
    by_title = {v["title"]: v for v in studio}
    assert by_title["Public one"]["likes"] == 1
    assert by_title["Public one"]["engagement"] == 1
    assert by_title["Private one"]["engagement"] == 0


def test_validate_video_file_accepts_known_extension_without_mime():
    video_service.validate_video_file("clip.MOV", "application/octet-stream", 10, 100)
