"""Test the like/dislike toggle and the derived counts."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from vidshare.errors import NotFound, ValidationError
from vidshare.models import VideoReaction
from vidshare.services import reactions as reaction_service
from vidshare.services.videos import reaction_counts


def _stored_counts(db, video_id):
    db.expire_all()
    rows = db.execute(
        select(VideoReaction.type, func.count())
        .where(VideoReaction.video_id == video_id)
        .group_by(VideoReaction.type)
    )
    counts = dict(rows.all())
    return counts.get("like", 0), counts.get("dislike", 0)


def test_toggle_transitions(client, make_user, make_video, auth_headers):
    user = make_user("alice")
    video = make_video(make_user("owner"))
    headers = auth_headers(user)

    def press(kind):
        response = client.post(f"/api/videos/{video.id}/{kind}", headers=headers)
        assert response.status_code == 200
        body = response.json()
        return body["likes"], body["dislikes"], body["reaction"]

    assert press("like") == (1, 0, "like")
    assert press("like") == (0, 0, None)
    assert press("dislike") == (0, 1, "dislike")
    assert press("like") == (1, 0, "like")

    mine = client.get(f"/api/videos/{video.id}/reaction", headers=headers).json()
    assert mine == {"video_id": video.id, "reaction": "like"}


def test_counts_always_match_reaction_rows(client, make_user, make_video, auth_headers, db):
    video = make_video(make_user("owner"))
    users = [make_user(f"user{i}") for i in range(4)]
    presses = [(0, "like"), (1, "like"), (2, "dislike"), (1, "dislike"), (3, "like"), (0, "like")]

    for index, kind in presses:
        body = client.post(f"/api/videos/{video.id}/{kind}", headers=auth_headers(users[index])).json()
        assert (body["likes"], body["dislikes"]) == _stored_counts(db, video.id)

    assert _stored_counts(db, video.id) == (1, 2)
    detail = client.get(f"/api/videos/{video.id}").json()
    assert (detail["likes"], detail["dislikes"]) == (1, 2)


def test_at_most_one_reaction_per_user(make_user, make_video, db):
    user = make_user("alice")
    video = make_video(make_user("owner"))

    for kind in ("like", "dislike", "dislike", "like", "dislike"):
        reaction_service.toggle_reaction(db, user.id, video.id, kind)
        rows = db.scalar(
            select(func.count()).select_from(VideoReaction).where(
                VideoReaction.user_id == user.id, VideoReaction.video_id == video.id
            )
        )
        assert rows <= 1

    assert reaction_service.current_reaction(db, user.id, video.id) == "dislike"
    assert reaction_counts(db, video.id) == (0, 1)


def test_toggle_rejects_unknown_kind_and_video(make_user, make_video, db):
    user = make_user("alice")
    video = make_video(make_user("owner"))

    with pytest.raises(ValidationError):
        reaction_service.toggle_reaction(db, user.id, video.id, "love")
    with pytest.raises(NotFound):
        reaction_service.toggle_reaction(db, user.id, 999999, "like")


def test_reaction_requires_authentication(client, make_user, make_video):
    video = make_video(make_user("owner"))
    assert client.post(f"/api/videos/{video.id}/like").status_code == 401
