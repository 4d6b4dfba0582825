"""Client for the external media host (Cloudinary-compatible upload API).

Videos and images never touch local disk: the request body is forwarded to the
host, which returns the public URL plus whatever metadata it extracted.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass

import httpx

from .. import settings
from ..errors import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass
class HostedAsset:
    asset_id: str
    url: str
    thumbnail_url: str | None = None
    bytes: int | None = None
    duration: int | None = None
    width: int | None = None
    height: int | None = None
    format: str | None = None


def sign_params(params: dict[str, str], api_secret: str) -> str:
    """Signature over the sorted ``key=value`` pairs followed by the secret."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] != "")
    return hashlib.sha1((to_sign + api_secret).encode()).hexdigest()


def thumbnail_for(video_url: str) -> str:
    """The host renders a poster frame when the extension is swapped for .jpg."""
    base, dot, _ = video_url.rpartition(".")
    return f"{base}.jpg" if dot else f"{video_url}.jpg"


class MediaHostClient:
    def __init__(
        self,
        base_url: str | None = None,
        cloud_name: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.MEDIA_HOST_URL).rstrip("/")
        self.cloud_name = cloud_name or settings.MEDIA_HOST_CLOUD_NAME
        self.api_key = api_key or settings.MEDIA_HOST_API_KEY
        self.api_secret = api_secret or settings.MEDIA_HOST_API_SECRET
        self.timeout = timeout or settings.MEDIA_HOST_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _endpoint(self, resource_type: str, action: str) -> str:
        return f"{self.base_url}/v1_1/{self.cloud_name}/{resource_type}/{action}"

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        if not self.configured:
            raise UpstreamFailure("Media host is not configured")
        params = {**params, "timestamp": str(int(time.time()))}
        params["signature"] = sign_params(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    def _post(self, url: str, data: dict[str, str], files: dict | None = None) -> dict:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(f"Media host request to {url} failed: {e}")
            raise UpstreamFailure("Media host is unreachable")

        if response.status_code >= 400:
            logger.error(f"Media host rejected request ({response.status_code}): {response.text[:500]}")
            raise UpstreamFailure("Media host rejected the upload")
        return response.json()

    def upload_video(self, content: bytes, filename: str, folder: str = "videos") -> HostedAsset:
        data = self._signed({"folder": folder})
        result = self._post(
            self._endpoint("video", "upload"), data, files={"file": (filename, content)}
        )
        url = result.get("secure_url") or result["url"]
        duration = result.get("duration")
        asset = HostedAsset(
            asset_id=result["public_id"],
            url=url,
            thumbnail_url=thumbnail_for(url),
            bytes=result.get("bytes"),
            duration=round(duration) if duration is not None else None,
            width=result.get("width"),
            height=result.get("height"),
            format=result.get("format"),
        )
        logger.info(f"Uploaded video asset {asset.asset_id} ({asset.bytes} bytes)")
        return asset

    def upload_image(self, content: bytes, filename: str, folder: str) -> HostedAsset:
        data = self._signed({"folder": folder})
        result = self._post(
            self._endpoint("image", "upload"), data, files={"file": (filename, content)}
        )
        return HostedAsset(
            asset_id=result["public_id"],
            url=result.get("secure_url") or result["url"],
            bytes=result.get("bytes"),
            width=result.get("width"),
            height=result.get("height"),
            format=result.get("format"),
        )

    def destroy(self, asset_id: str, resource_type: str = "video") -> None:
        data = self._signed({"public_id": asset_id})
        result = self._post(self._endpoint(resource_type, "destroy"), data)
        if result.get("result") not in ("ok", "not found"):
            raise UpstreamFailure(f"Media host could not delete {asset_id}")
        logger.info(f"Deleted media asset {asset_id}: {result.get('result')}")
