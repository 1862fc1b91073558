"""
API models for the five-role creative pipeline.
"""

from pydantic import Field, field_validator
from typing import Dict, List, Optional

from .common import CamelModel, check_image_reference


class PipelineRunRequest(CamelModel):
    """One whiteboard snapshot to run through the pipeline."""
    image_url: str = Field(..., alias="imageUrl", min_length=1, description="Board snapshot, remote URL or data URI")
    theme_id: Optional[str] = Field(None, alias="themeId", description="Registered theme; unknown ids fall back to the default")
    style_image_url: Optional[str] = Field(None, alias="styleImageUrl", description="Optional style reference image")
    prompts: Optional[Dict[str, str]] = Field(None, description="Explicit role prompts (role1..role5), overrides the theme")
    branch: Optional[bool] = Field(None, description="Run role2-role4 in parallel; only used with explicit prompts")
    use_style: Dict[str, bool] = Field(default_factory=dict, alias="useStyle", description="Which roles receive the style image")

    @field_validator("image_url", "style_image_url")
    @classmethod
    def validate_image_refs(cls, v):
        return check_image_reference(v)

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "imageUrl": "https://example.com/board.png",
                "themeId": "PowerGirls",
                "styleImageUrl": "https://example.com/style.png",
                "useStyle": {"role3": True, "role5": True},
            }
        },
    }


class PipelineRunResponse(CamelModel):
    outputs: Dict[str, str] = Field(..., description="Text produced by each role that ran")
    image_url: str = Field(..., alias="imageUrl")
    image_urls: List[str] = Field(..., alias="imageUrls")
    theme_id: str = Field(..., alias="themeId")
    image_path: str = Field(..., alias="imagePath", description="single_shot or job")
    job_id: Optional[str] = Field(None, alias="jobId")
