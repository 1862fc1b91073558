"""
Creative pipeline endpoint: whiteboard snapshot in, per-role text and image out.
"""

import time
import logging
from fastapi import APIRouter, Depends

from ..models.pipeline import PipelineRunRequest, PipelineRunResponse
from ..dependencies.services import get_orchestrator
from src.pipeline.creative.orchestrator import PipelineOrchestrator
from src.pipeline.creative.registry import prompt_set_from_mapping
from src.pipeline.creative.types import PipelineRequest, Role
from src.pipeline.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_roles(mapping, field: str):
    try:
        return {Role(key): value for key, value in mapping.items()}
    except ValueError as e:
        raise ValidationError(f"Unknown role in {field}: {e}") from e


@router.post("", response_model=PipelineRunResponse)
async def run_pipeline(
    request: PipelineRunRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator)
):
    """
    Run analyze -> (branch) -> synthesize -> image for one board snapshot.

    Explicit `prompts` replace the theme's prompts; `branch` only applies to them.
    Failures surface through the PipelineError handler (400/500/504).
    """
    start_time = time.time()

    prompt_set = None
    if request.prompts is not None:
        _parse_roles(request.prompts, "prompts")
        try:
            prompt_set = prompt_set_from_mapping(request.prompts, branch=bool(request.branch))
        except ValueError as e:
            raise ValidationError(str(e)) from e

    pipeline_request = PipelineRequest(
        board_image=request.image_url,
        theme_id=request.theme_id,
        style_image=request.style_image_url,
        use_style_by_role=_parse_roles(request.use_style, "useStyle"),
    )

    result = await orchestrator.run(pipeline_request, prompt_set=prompt_set)
    logger.info(f"Pipeline finished in {time.time() - start_time:.2f}s (theme {result.theme_id})")

    return PipelineRunResponse(
        outputs=result.outputs,
        image_url=result.image_url,
        image_urls=result.image_urls,
        theme_id=result.theme_id,
        image_path=result.image_path.value,
        job_id=result.job_id,
    )
