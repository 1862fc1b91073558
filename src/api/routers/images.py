"""
Single-shot image generation, durable upload and the direct board-to-image path.
"""

from fastapi import APIRouter, Depends

from ..models.images import (
    BoardGenerateRequest, BoardGenerateResponse, ImageRequest, ImageResponse,
    UploadRequest, UploadResponse,
)
from ..dependencies.services import get_board_director, get_image_requester, get_uploader
from src.models.services.storage import StorageUploader
from src.pipeline.creative.board import BoardDirector
from src.pipeline.creative.imaging import ImageRequester
from src.pipeline.creative.types import EditImage

router = APIRouter()


@router.post("/image", response_model=ImageResponse)
async def generate_image(
    request: ImageRequest,
    requester: ImageRequester = Depends(get_image_requester)
):
    image_url = await requester.generate(request.prompt, mode=request.mode, src_image_url=request.src_image_url)
    return ImageResponse(image_url=image_url)


@router.post("/upload", response_model=UploadResponse)
async def upload_image(
    request: UploadRequest,
    uploader: StorageUploader = Depends(get_uploader)
):
    secure_url = await uploader.upload(request.image_url)
    return UploadResponse(secure_url=secure_url)


@router.post("/board/generate", response_model=BoardGenerateResponse)
async def board_generate(
    request: BoardGenerateRequest,
    director: BoardDirector = Depends(get_board_director)
):
    """
    One vision call chooses generate_image or edit_image for the board, then one image call.

    `imageUrl` is the durable copy when storage accepted it (`persisted`),
    otherwise the provider's url.
    """
    result = await director.direct(request.board_image_url, request.template_id, request.user_prompt)
    return BoardGenerateResponse(
        action="edit_image" if isinstance(result.action, EditImage) else "generate_image",
        prompt=result.prompt,
        image_url=result.image_url,
        original_image_url=result.original_image_url,
        persisted=result.persisted,
    )
