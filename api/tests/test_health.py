from __future__ import annotations

from vidshare import schemas


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["uptime_s"] >= 0


def test_public_config(client):
    response = client.get("/api/config")
    assert response.status_code == 200
    body = response.json()
    assert body["categories"] == schemas.VIDEO_CATEGORIES
    assert body["visibilities"] == ["Public", "Unlisted", "Private"]
    assert body["video_upload_size_limit_bytes"] > 0


def test_redis_health_without_redis(client):
    """REDIS_URL is empty in tests, so Redis reports unavailable."""
    response = client.get("/api/health/redis")
    assert response.status_code == 503
    assert response.json()["status"] == "unavailable"


def test_security_headers(client):
    response = client.get("/api/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
