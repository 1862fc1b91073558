from dataclasses import dataclass, field
from enum import Enum
from os import getenv
from typing import Any, Dict, List, Optional


class JobMode(str, Enum):
    TEXT2IMG = "text2img"
    IMG2IMG = "img2img"


class JobStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ImageJobRequest:
    mode: JobMode
    prompt: str
    source_image: Optional[str] = None #remote url or data uri, img2img only
    aspect_ratio: str = "1:1"
    image_count: int = 1
    parent_job_id: Optional[str] = None #chain onto a previous generation


@dataclass(frozen=True)
class ImageJob:
    """Read-only view of the renderer's job state, built from one status response."""
    id: str
    status: JobStatus
    images: List[str] = field(default_factory=list)
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class SignedRequestParams:
    path: str
    timestamp: str
    nonce: str
    signature: str

    def as_query(self, access_key: str) -> Dict[str, str]:
        return {
            "AccessKey": access_key,
            "Signature": self.signature,
            "Timestamp": self.timestamp,
            "SignatureNonce": self.nonce,
        }


@dataclass(frozen=True)
class ImageJobSettings:
    host: str
    access_key: str
    secret_key: str
    text2img_template: str = ""
    img2img_template: str = ""
    text2img_path: str = "/api/generate/kontext/text2img"
    img2img_path: str = "/api/generate/kontext/img2img"
    status_path: str = "/api/generate/status"
    poll_interval: float = 2.0
    timeout: float = 60.0
    request_timeout: float = 30.0
    guidance_scale: float = 3.5

    @classmethod
    def from_config(cls, section: Dict[str, Any]) -> "ImageJobSettings":
        """Credentials come from the environment variables the section names."""
        return cls(
            host=getenv(section.get("host_env", "LIBLIB_API_HOST")) or section.get("host", "https://api.liblibai.cloud"),
            access_key=getenv(section.get("access_key_env", "LIBLIB_ACCESS_KEY"), ""),
            secret_key=getenv(section.get("secret_key_env", "LIBLIB_SECRET_KEY"), ""),
            text2img_template=getenv(section.get("text2img_template_env", "LIBLIB_T2I_TEMPLATE_UUID"), ""),
            img2img_template=getenv(section.get("img2img_template_env", "LIBLIB_I2I_TEMPLATE_UUID"), ""),
            poll_interval=float(section.get("poll_interval_s", 2.0)),
            timeout=float(section.get("timeout_s", 60.0)),
            request_timeout=float(section.get("request_timeout_s", 30.0)),
        )

    def path_for(self, mode: JobMode) -> str:
        return self.text2img_path if mode is JobMode.TEXT2IMG else self.img2img_path

    def template_for(self, mode: JobMode) -> str:
        return self.text2img_template if mode is JobMode.TEXT2IMG else self.img2img_template
