"""Test the media host client and the orphaned-asset cleanup job."""

from __future__ import annotations

import hashlib
from types import SimpleNamespace

import pytest

from vidshare import tasks
from vidshare.errors import UpstreamFailure
from vidshare.services.media_host import MediaHostClient, sign_params, thumbnail_for


def _client() -> MediaHostClient:
    return MediaHostClient(
        base_url="https://media.test/",
        cloud_name="demo",
        api_key="key",
        api_secret="secret",
    )


def test_sign_params_sorts_and_skips_empty_values():
    signature = sign_params({"timestamp": "100", "folder": "videos", "empty": ""}, "secret")
    assert signature == hashlib.sha1(b"folder=videos&timestamp=100secret").hexdigest()


def test_thumbnail_for():
    assert thumbnail_for("https://media.test/v/clip.mp4") == "https://media.test/v/clip.jpg"
    assert thumbnail_for("clip") == "clip.jpg"


def test_unconfigured_client_fails_upstream():
    client = _client()
    client.api_secret = None
    with pytest.raises(UpstreamFailure):
        client.upload_video(b"data", "clip.mp4")


def test_upload_video_maps_host_response(monkeypatch):
    calls = []

    def fake_post(self, url, data, files=None):
        calls.append((url, data, files))
        return {
            "public_id": "videos/abc",
            "secure_url": "https://media.test/videos/abc.mp4",
            "bytes": 2048,
            "duration": 12.6,
            "width": 640,
            "height": 360,
            "format": "mp4",
        }

    monkeypatch.setattr(MediaHostClient, "_post", fake_post)

    asset = _client().upload_video(b"data", "clip.mp4")

    url, data, files = calls[0]
    assert url == "https://media.test/v1_1/demo/video/upload"
    assert data["api_key"] == "key"
    assert "signature" in data and "timestamp" in data
    assert files == {"file": ("clip.mp4", b"data")}
    assert asset.asset_id == "videos/abc"
    assert asset.thumbnail_url == "https://media.test/videos/abc.jpg"
    assert asset.duration == 13


def test_destroy_rejects_unexpected_result(monkeypatch):
    monkeypatch.setattr(MediaHostClient, "_post", lambda self, url, data, files=None: {"result": "error"})
    with pytest.raises(UpstreamFailure):
        _client().destroy("videos/abc")


def test_cleanup_task_destroys_asset(monkeypatch):
    destroyed = []
    monkeypatch.setattr(
        tasks.MediaHostClient,
        "destroy",
        lambda self, asset_id, resource_type="video": destroyed.append((asset_id, resource_type)),
    )

    result = tasks.cleanup_orphaned_asset.apply(args=("videos/abc",)).get()

    assert result == {"status": "deleted", "asset_id": "videos/abc"}
    assert destroyed == [("videos/abc", "video")]


def test_enqueue_cleanup_survives_broker_outage(monkeypatch):
    def broken_delay(*args, **kwargs):
        raise ConnectionError("broker down")

    monkeypatch.setattr(tasks, "cleanup_orphaned_asset", SimpleNamespace(delay=broken_delay))
    tasks.enqueue_asset_cleanup("videos/abc")
