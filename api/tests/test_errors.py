"""Test the mapping of domain errors onto problem responses."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from vidshare import errors
from vidshare.main import app
from vidshare.services import videos as video_service


@pytest.mark.parametrize(
    "exc_class,status",
    [
        (errors.ValidationError, 400),
        (errors.InvalidOperation, 400),
        (errors.NotWatching, 400),
        (errors.Unauthenticated, 401),
        (errors.Forbidden, 403),
        (errors.NotFound, 404),
        (errors.Conflict, 409),
        (errors.AlreadyWatching, 409),
        (errors.RateLimited, 429),
        (errors.RangeNotSatisfiable, 416),
        (errors.UpstreamFailure, 500),
    ],
)
def test_status_codes(exc_class, status):
    assert exc_class.status_code == status
    assert issubclass(exc_class, errors.DomainError)


def test_domain_error_becomes_problem_document(client, monkeypatch):
    def boom(*args, **kwargs):
        raise errors.UpstreamFailure("Media host is unreachable")

    monkeypatch.setattr(video_service, "list_public", boom)

    response = client.get("/api/videos")

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json() == {
        "type": "about:blank",
        "title": "Upstream Failure",
        "status": 500,
        "detail": "Media host is unreachable",
    }


def test_unexpected_error_hides_detail(media_host, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("connection string with password=hunter2")

    monkeypatch.setattr(video_service, "list_public", boom)

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/api/videos")

    assert response.status_code == 500
    assert response.json()["detail"] == "Server error"
    assert "hunter2" not in response.text


def test_request_validation_is_a_bad_request(client):
    response = client.post("/api/auth/register", json={"username": "alice"})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/problem+json")
    problem = response.json()
    assert problem["title"] == "Bad Request"
    assert "email" in problem["errors"]
    assert "password" in problem["errors"]


def test_missing_comment_text_is_a_bad_request(client, make_user, make_video, auth_headers):
    alice = make_user("alice")
    video = make_video(alice)

    response = client.post(f"/api/videos/{video.id}/comments", json={}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert "text" in response.json()["errors"]
