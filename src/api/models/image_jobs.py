"""
API models for the signed image-job endpoints.
"""

from pydantic import Field, field_validator
from typing import List, Optional

from src.pipeline.image_jobs.types import ImageJobRequest, JobMode, JobStatus
from .common import CamelModel, check_image_reference


class ImageJobSubmitRequest(CamelModel):
    mode: JobMode = Field(JobMode.TEXT2IMG, description="text2img or img2img")
    prompt: str = Field(..., description="Generation prompt")
    source_image: Optional[str] = Field(None, alias="sourceImage", description="img2img source, URL or data URI")
    aspect_ratio: str = Field("1:1", alias="aspectRatio")
    image_count: int = Field(1, alias="imageCount")
    parent_job_id: Optional[str] = Field(None, alias="parentJobId", description="Previous generateUuid to chain onto")

    @field_validator("source_image")
    @classmethod
    def validate_source(cls, v):
        return check_image_reference(v)

    def to_job_request(self) -> ImageJobRequest:
        return ImageJobRequest(
            mode=self.mode,
            prompt=self.prompt,
            source_image=self.source_image,
            aspect_ratio=self.aspect_ratio,
            image_count=self.image_count,
            parent_job_id=self.parent_job_id,
        )


class ImageJobWaitRequest(ImageJobSubmitRequest):
    poll_interval: Optional[float] = Field(None, alias="pollInterval", gt=0, description="Seconds between polls")
    timeout: Optional[float] = Field(None, gt=0, description="Seconds to wait once the job is accepted")


class ImageJobSubmitResponse(CamelModel):
    generate_uuid: str = Field(..., alias="generateUuid")


class ImageJobStatusRequest(CamelModel):
    generate_uuid: str = Field(..., alias="generateUuid", min_length=1)


class ImageJobStatusResponse(CamelModel):
    generate_uuid: str = Field(..., alias="generateUuid")
    status: JobStatus
    images: List[str] = Field(default_factory=list)


class ImageJobResultResponse(CamelModel):
    generate_uuid: str = Field(..., alias="generateUuid")
    images: List[str]
