"""
API models for single-shot image generation, durable upload and the board path.
"""

from pydantic import Field, field_validator
from typing import Literal, Optional

from .common import CamelModel, check_image_reference


class ImageRequest(CamelModel):
    prompt: str = Field(..., description="Image prompt")
    mode: Literal["generate", "edit"] = "generate"
    src_image_url: Optional[str] = Field(None, alias="srcImageUrl", description="Source image for edit mode")

    @field_validator("src_image_url")
    @classmethod
    def validate_source(cls, v):
        return check_image_reference(v)


class ImageResponse(CamelModel):
    image_url: str = Field(..., alias="imageUrl")


class UploadRequest(CamelModel):
    image_url: str = Field(..., alias="imageUrl", min_length=1, description="Data URI or remote URL")

    @field_validator("image_url")
    @classmethod
    def validate_image(cls, v):
        return check_image_reference(v)


class UploadResponse(CamelModel):
    secure_url: str = Field(..., alias="secureUrl")


class BoardGenerateRequest(CamelModel):
    board_image_url: str = Field(..., alias="boardImageUrl", min_length=1)
    template_id: Optional[str] = Field(None, alias="templateId", description="Style/template tag passed to the director")
    user_prompt: Optional[str] = Field(None, alias="userPrompt")

    @field_validator("board_image_url")
    @classmethod
    def validate_board(cls, v):
        return check_image_reference(v)


class BoardGenerateResponse(CamelModel):
    action: Literal["generate_image", "edit_image"]
    prompt: str
    image_url: str = Field(..., alias="imageUrl")
    original_image_url: str = Field(..., alias="originalImageUrl")
    persisted: bool
