"""
Signed image-job endpoints: submit, poll once, or submit and wait.
"""

from fastapi import APIRouter, Depends

from ..models.image_jobs import (
    ImageJobResultResponse, ImageJobStatusRequest, ImageJobStatusResponse,
    ImageJobSubmitRequest, ImageJobSubmitResponse, ImageJobWaitRequest,
)
from ..dependencies.services import get_image_job_client
from src.pipeline.image_jobs.client import ImageJobClient

router = APIRouter()


@router.post("/submit", response_model=ImageJobSubmitResponse)
async def submit_job(
    request: ImageJobSubmitRequest,
    client: ImageJobClient = Depends(get_image_job_client)
):
    job_id = await client.submit(request.to_job_request())
    return ImageJobSubmitResponse(generate_uuid=job_id)


@router.post("/status", response_model=ImageJobStatusResponse)
async def job_status(
    request: ImageJobStatusRequest,
    client: ImageJobClient = Depends(get_image_job_client)
):
    """Single poll. A job that is still rendering comes back as `pending` with no images."""
    job = await client.poll(request.generate_uuid)
    return ImageJobStatusResponse(generate_uuid=job.id, status=job.status, images=job.images)


@router.post("/generate", response_model=ImageJobResultResponse)
async def generate_and_wait(
    request: ImageJobWaitRequest,
    client: ImageJobClient = Depends(get_image_job_client)
):
    """Submit and poll until images arrive; 504 once the wait budget runs out."""
    job = await client.run_job(
        request.to_job_request(),
        poll_interval=request.poll_interval,
        timeout=request.timeout,
    )
    return ImageJobResultResponse(generate_uuid=job.id, images=job.images)
