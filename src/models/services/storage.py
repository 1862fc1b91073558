from __future__ import annotations
from dataclasses import dataclass
from os import getenv
from typing import Any, Dict, Optional
import logging

import httpx

from src.pipeline.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"


@dataclass(frozen=True)
class PersistResult:
    url: str #durable url, or the original one when persisting failed
    persisted: bool
    error: Optional[str] = None


class StorageUploader:
    """Durable copies of generated or user-supplied images (Cloudinary unsigned upload)."""

    def __init__(self, cloud_name: Optional[str], upload_preset: Optional[str], folder: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self.cloud_name = cloud_name
        self.upload_preset = upload_preset
        self.folder = folder
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    @classmethod
    def from_config(cls, section: Dict[str, Any], http_client: Optional[httpx.AsyncClient] = None) -> "StorageUploader":
        storage_type = section.get("type", "cloudinary")
        if storage_type != "cloudinary":
            raise ValueError(f"Unknown storage type: {storage_type}")
        return cls(
            cloud_name=getenv(section.get("cloud_name_env", "CLOUDINARY_CLOUD_NAME")),
            upload_preset=getenv(section.get("upload_preset_env", "CLOUDINARY_UPLOAD_PRESET")),
            folder=section.get("folder"),
            http_client=http_client,
            timeout=float(section.get("timeout_s", 30.0)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.upload_preset)

    async def upload(self, image_url: str) -> str:
        """Upload a data uri or remote url. Raises on any failure."""
        if not self.configured:
            raise ConfigurationError("Durable storage is not configured")

        form = {"file": image_url, "upload_preset": self.upload_preset}
        if self.folder:
            form["folder"] = self.folder

        try:
            response = await self._client.post(CLOUDINARY_UPLOAD_URL.format(cloud_name=self.cloud_name), data=form)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Storage upload failed: {e}") from e

        if not response.is_success:
            raise UpstreamError("Storage upload failed", response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError("Storage returned invalid JSON", response.status_code, response.text) from e

        if not isinstance(body, dict):
            raise UpstreamError("Storage response is not a JSON object", response.status_code, response.text)

        secure_url = body.get("secure_url") or body.get("url")
        if not isinstance(secure_url, str) or not secure_url:
            raise UpstreamError("Storage response has no url", response.status_code, response.text)
        return secure_url

    async def persist(self, image_url: str) -> PersistResult:
        """Best-effort durable copy. Never raises, falls back to the original url."""
        if not self.configured:
            logger.warning("Storage not configured, keeping original image url")
            return PersistResult(url=image_url, persisted=False, error="not configured")
        try:
            return PersistResult(url=await self.upload(image_url), persisted=True)
        except (UpstreamError, ConfigurationError) as e:
            logger.warning(f"Durable copy failed, keeping original image url: {e}")
            return PersistResult(url=image_url, persisted=False, error=str(e))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
